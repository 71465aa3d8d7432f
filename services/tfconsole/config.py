"""
Configuration management for the tfconsole operation client.

Non-secret configuration loaded from YAML file, secrets from environment variables.
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONFIG_PATH = "/etc/tfconsole/config.yaml"
DEFAULT_API_URL = "http://localhost:8000"


def yaml_config_settings_source() -> dict[str, Any]:
    """Load configuration from YAML file."""
    config_path = Path(os.environ.get("TFCONSOLE_CONFIG_FILE", DEFAULT_CONFIG_PATH))
    if config_path.exists():
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    return {}


# --- Backend API Configuration ---


class APIConfig(BaseModel):
    """Backend API connection configuration."""

    base_url: str = Field(
        default="",
        description="Backend API base URL. Falls back to NEXT_PUBLIC_API_URL, "
        "then http://localhost:8000.",
    )
    connect_timeout_seconds: float = Field(default=10.0)
    request_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for JSON (non-streamed) calls",
    )
    stream_timeout_seconds: float | None = Field(
        default=None,
        description="Read timeout for streamed operations. None waits indefinitely.",
    )
    auth_token: str = Field(
        default="",
        description="Bearer token sent in the Authorization header (empty = none)",
    )

    @model_validator(mode="after")
    def _resolve_base_url(self) -> "APIConfig":
        if not self.base_url:
            self.base_url = os.environ.get("NEXT_PUBLIC_API_URL", "") or DEFAULT_API_URL
        self.base_url = self.base_url.rstrip("/")
        return self


# --- Operation Configuration ---


class OperationsConfig(BaseModel):
    """Terraform operation orchestration configuration."""

    status_reset_seconds: float = Field(
        default=0,
        description="Reset a succeeded operation back to idle after this many seconds. "
        "0 disables the reset.",
    )
    default_generation_provider: str = Field(
        default="terraform",
        description="IaC provider name sent with generation requests",
    )


# --- Main Settings ---


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="TFCONSOLE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="tfconsole")
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True, description="JSON logging in production")

    # Backend API
    api: APIConfig = Field(default_factory=APIConfig)

    # Operations
    operations: OperationsConfig = Field(default_factory=OperationsConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Customize settings sources: env vars override YAML config."""
        return (
            init_settings,
            env_settings,
            yaml_config_settings_source,
            dotenv_settings,
            file_secret_settings,
        )


# Global settings instance
settings = Settings()
