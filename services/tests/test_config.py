"""Tests for configuration loading."""

import pytest

from tfconsole.config import DEFAULT_API_URL, APIConfig, Settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.setenv("TFCONSOLE_CONFIG_FILE", str(tmp_path / "absent.yaml"))
    monkeypatch.delenv("NEXT_PUBLIC_API_URL", raising=False)
    monkeypatch.delenv("TFCONSOLE_API__BASE_URL", raising=False)
    monkeypatch.delenv("TFCONSOLE_OPERATIONS__STATUS_RESET_SECONDS", raising=False)


def test_defaults():
    settings = Settings()

    assert settings.app_name == "tfconsole"
    assert settings.api.base_url == DEFAULT_API_URL
    assert settings.api.stream_timeout_seconds is None
    assert settings.operations.status_reset_seconds == 0
    assert settings.operations.default_generation_provider == "terraform"


def test_public_api_url_fallback(monkeypatch):
    monkeypatch.setenv("NEXT_PUBLIC_API_URL", "https://api.example.com/")

    assert APIConfig().base_url == "https://api.example.com"


def test_env_overrides_nested_values(monkeypatch):
    monkeypatch.setenv("TFCONSOLE_API__BASE_URL", "http://backend:9000")
    monkeypatch.setenv("TFCONSOLE_OPERATIONS__STATUS_RESET_SECONDS", "3")

    settings = Settings()

    assert settings.api.base_url == "http://backend:9000"
    assert settings.operations.status_reset_seconds == 3


def test_yaml_file(monkeypatch, tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "api:\n"
        "  base_url: http://from-yaml:8000\n"
        "  request_timeout_seconds: 5\n"
        "operations:\n"
        "  status_reset_seconds: 2.5\n"
    )
    monkeypatch.setenv("TFCONSOLE_CONFIG_FILE", str(config_file))

    settings = Settings()

    assert settings.api.base_url == "http://from-yaml:8000"
    assert settings.api.request_timeout_seconds == 5
    assert settings.operations.status_reset_seconds == 2.5


def test_env_wins_over_yaml(monkeypatch, tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("api:\n  base_url: http://from-yaml:8000\n")
    monkeypatch.setenv("TFCONSOLE_CONFIG_FILE", str(config_file))
    monkeypatch.setenv("TFCONSOLE_API__BASE_URL", "http://from-env:8000")

    assert Settings().api.base_url == "http://from-env:8000"
