"""Domain and wire models for the operation orchestrator.

Wire records (credentials, projects, workspaces, history entries) are
pydantic models validated from backend JSON. In-memory orchestration state
uses plain dataclasses.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from tfconsole.domain.fileset import EMPTY_FILESET, FileSet

# --- Enumerations ---


class OperationKind(StrEnum):
    """Terraform operations the backend can run against a workspace."""

    VALIDATE = "validate"
    PLAN = "plan"
    COMPLIANCE = "compliance"
    APPLY = "apply"
    DESTROY = "destroy"


class OperationStatus(StrEnum):
    """Client-side status of one operation kind within a workspace session."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CloudProvider(StrEnum):
    """Cloud providers supported by the backend."""

    AWS = "aws"
    AZURE = "azure"
    GCP = "gcp"

    @property
    def provider_id(self) -> int:
        return PROVIDER_ID_MAP[self]

    @classmethod
    def from_id(cls, provider_id: int | None) -> "CloudProvider":
        """Map a wire ``cloud_provider_id``; unknown ids fall back to AWS."""
        return PROVIDER_NAME_MAP.get(provider_id, cls.AWS)  # type: ignore[arg-type]


PROVIDER_ID_MAP: dict[CloudProvider, int] = {
    CloudProvider.AWS: 1,
    CloudProvider.AZURE: 2,
    CloudProvider.GCP: 3,
}

PROVIDER_NAME_MAP: dict[int, CloudProvider] = {v: k for k, v in PROVIDER_ID_MAP.items()}

DEFAULT_PROVIDER = CloudProvider.AWS


# --- Credentials ---


class CredentialRecord(BaseModel):
    """A stored credential as listed by the backend. Secrets are never fetched."""

    model_config = ConfigDict(extra="ignore")

    credential_id: int
    cloud_provider_id: int
    name: str | None = None

    @property
    def provider(self) -> CloudProvider | None:
        return PROVIDER_NAME_MAP.get(self.cloud_provider_id)


@dataclass(frozen=True)
class Selected:
    """A credential was chosen for the project."""

    credential_id: int


@dataclass(frozen=True)
class NoCredential:
    """No credential can authorize operations; ``reason`` says why."""

    reason: str


CredentialSelection = Selected | NoCredential


# --- Projects & Workspaces ---


class Project(BaseModel):
    """A project as exposed to callers; built from the snake_case wire format."""

    model_config = ConfigDict(extra="ignore")

    id: int | str
    name: str
    description: str = ""
    provider: CloudProvider = DEFAULT_PROVIDER
    created_at: datetime | None = None
    last_modified: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_wire(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "project_id" not in data:
            return data
        return {
            "id": data["project_id"],
            "name": data.get("project_name") or "",
            "description": data.get("description") or "",
            "provider": CloudProvider.from_id(data.get("cloud_provider_id")),
            "created_at": data.get("created_at"),
            "last_modified": data.get("last_modified"),
        }


class Workspace(BaseModel):
    """A workspace within a project."""

    model_config = ConfigDict(extra="ignore")

    id: int | str
    name: str
    project_id: int | str | None = None
    environment: str = ""
    description: str = ""
    created_at: datetime | None = None
    last_modified: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_wire(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "workspace_id" not in data:
            return data
        return {
            "id": data["workspace_id"],
            "name": data.get("workspace_name") or data.get("name") or "",
            "project_id": data.get("project_id"),
            "environment": data.get("environment") or "",
            "description": data.get("description") or "",
            "created_at": data.get("created_at"),
            "last_modified": data.get("last_modified"),
        }


# --- Generation history ---


class GeneratedContent(BaseModel):
    """A generation snapshot: the file set plus analysis produced alongside it."""

    model_config = ConfigDict(extra="allow")

    infrastructure: dict[str, Any] | None = None
    security: Any = None
    costs: Any = None
    cost_summary: Any = None
    metadata: Any = None
    documentation: Any = None

    @property
    def has_infrastructure(self) -> bool:
        return bool(self.infrastructure)

    def file_set(self) -> FileSet:
        if not self.infrastructure:
            return EMPTY_FILESET
        return FileSet.from_tree(self.infrastructure)


def _decode_json_string(value: Any) -> Any:
    # Some backends store the snapshot as a serialized JSON column.
    if isinstance(value, str):
        if not value.strip():
            return None
        return json.loads(value)
    return value


class HistoryEntry(BaseModel):
    """One generation (or restore) event recorded for a workspace."""

    model_config = ConfigDict(extra="ignore")

    id: int | str
    prompt_content: str = ""
    generated_content: GeneratedContent | None = None
    created_at: datetime | None = None

    @field_validator("generated_content", mode="before")
    @classmethod
    def _decode_generated(cls, value: Any) -> Any:
        return _decode_json_string(value)

    @property
    def has_infrastructure(self) -> bool:
        return self.generated_content is not None and self.generated_content.has_infrastructure


class HistoryEntryDetail(BaseModel):
    """Single-entry response from the history lookup endpoint."""

    model_config = ConfigDict(extra="ignore")

    generated_content: GeneratedContent | None = None

    @field_validator("generated_content", mode="before")
    @classmethod
    def _decode_generated(cls, value: Any) -> Any:
        return _decode_json_string(value)


# --- Orchestration ---


@dataclass(frozen=True)
class OperationContext:
    """Everything an operation chain needs, passed explicitly per invocation."""

    org_id: int | None
    project_id: int | str | None
    workspace_id: int | str | None
    provider: CloudProvider | None = None
    user_id: int | str | None = None
    files: FileSet = field(default_factory=FileSet)

    def request_body(self, credential_id: int) -> dict[str, Any]:
        """JSON body for a ``/terraform/<operation>`` call."""
        return {
            "project_id": self.project_id,
            "workspace_id": self.workspace_id,
            "tf_files": self.files.to_payload(),
            "credential_id": credential_id,
        }


@dataclass
class ChainResult:
    """Outcome of one chain invocation."""

    chain: list[OperationKind]
    statuses: dict[OperationKind, OperationStatus]
    output: str = ""
    rejected: bool = False
    failed_kind: OperationKind | None = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return not self.rejected and self.failed_kind is None

    @property
    def completed(self) -> list[OperationKind]:
        return [k for k in self.chain if self.statuses.get(k) == OperationStatus.SUCCEEDED]
