"""Tests for wire and domain models."""

import json

import pytest
from pydantic import ValidationError

from tfconsole.domain.fileset import FileSet
from tfconsole.domain.models import (
    PROVIDER_ID_MAP,
    ChainResult,
    CloudProvider,
    CredentialRecord,
    GeneratedContent,
    HistoryEntry,
    OperationContext,
    OperationKind,
    OperationStatus,
    Project,
    Workspace,
)


class TestCloudProvider:
    def test_id_maps(self):
        assert PROVIDER_ID_MAP == {CloudProvider.AWS: 1, CloudProvider.AZURE: 2, CloudProvider.GCP: 3}
        assert CloudProvider.GCP.provider_id == 3

    def test_from_id_falls_back_to_aws(self):
        assert CloudProvider.from_id(2) == CloudProvider.AZURE
        assert CloudProvider.from_id(99) == CloudProvider.AWS
        assert CloudProvider.from_id(None) == CloudProvider.AWS


class TestCredentialRecord:
    def test_provider_property(self):
        record = CredentialRecord.model_validate(
            {"credential_id": 4, "cloud_provider_id": 3, "name": "gcp-prod", "secret": "x"}
        )
        assert record.provider == CloudProvider.GCP
        assert not hasattr(record, "secret")

    def test_unknown_provider_is_none(self):
        record = CredentialRecord(credential_id=1, cloud_provider_id=7)
        assert record.provider is None

    def test_requires_credential_id(self):
        with pytest.raises(ValidationError):
            CredentialRecord.model_validate({"cloud_provider_id": 1})


class TestProjectWireMapping:
    def test_maps_snake_case_fields(self):
        project = Project.model_validate(
            {
                "project_id": 12,
                "project_name": "network",
                "cloud_provider_id": 2,
                "created_at": "2026-01-01T00:00:00Z",
                "last_modified": None,
            }
        )

        assert project.id == 12
        assert project.name == "network"
        assert project.provider == CloudProvider.AZURE
        assert project.created_at is not None
        assert project.last_modified is None

    def test_unknown_provider_id_defaults_to_aws(self):
        project = Project.model_validate({"project_id": 1, "project_name": "p", "cloud_provider_id": 0})
        assert project.provider == CloudProvider.AWS

    def test_accepts_semantic_fields(self):
        project = Project.model_validate({"id": "p-1", "name": "p", "provider": "gcp"})
        assert project.provider == CloudProvider.GCP


class TestWorkspaceWireMapping:
    def test_maps_snake_case_fields(self):
        workspace = Workspace.model_validate(
            {"workspace_id": 5, "workspace_name": "dev", "project_id": 12, "environment": "dev"}
        )
        assert workspace.id == 5
        assert workspace.name == "dev"
        assert workspace.project_id == 12


class TestHistoryEntry:
    def test_generated_content_decoded_from_json_string(self):
        entry = HistoryEntry.model_validate(
            {
                "id": 1,
                "prompt_content": "a vpc",
                "generated_content": json.dumps({"infrastructure": {"main.tf": "x"}}),
            }
        )
        assert entry.has_infrastructure
        assert entry.generated_content.file_set() == {"main.tf": "x"}

    def test_missing_infrastructure(self):
        entry = HistoryEntry.model_validate({"id": 2, "generated_content": {"security": []}})
        assert not entry.has_infrastructure

    def test_null_and_blank_content(self):
        assert not HistoryEntry.model_validate({"id": 3, "generated_content": None}).has_infrastructure
        assert not HistoryEntry.model_validate({"id": 4, "generated_content": ""}).has_infrastructure

    def test_analysis_fields_preserved(self):
        content = GeneratedContent.model_validate(
            {
                "infrastructure": {"main.tf": "x"},
                "security": [{"severity": "high"}],
                "costs": [{"resource": "aws_instance.web", "monthly": 8.5}],
                "cost_summary": {"total": 8.5},
                "estimated_by": "infracost",
            }
        )
        assert content.security == [{"severity": "high"}]
        assert content.cost_summary == {"total": 8.5}
        assert content.model_extra == {"estimated_by": "infracost"}


def test_operation_context_request_body():
    context = OperationContext(
        org_id=1,
        project_id=12,
        workspace_id=5,
        provider=CloudProvider.AWS,
        files=FileSet({"main.tf": "x"}),
    )

    assert context.request_body(7) == {
        "project_id": 12,
        "workspace_id": 5,
        "tf_files": {"main.tf": "x"},
        "credential_id": 7,
    }


def test_chain_result_flags():
    result = ChainResult(
        chain=[OperationKind.VALIDATE, OperationKind.PLAN],
        statuses={
            OperationKind.VALIDATE: OperationStatus.SUCCEEDED,
            OperationKind.PLAN: OperationStatus.FAILED,
        },
        failed_kind=OperationKind.PLAN,
    )
    assert not result.succeeded
    assert result.completed == [OperationKind.VALIDATE]
