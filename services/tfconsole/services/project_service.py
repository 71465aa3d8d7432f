"""Project and workspace lookups.

Callers use these to build an OperationContext. The backend speaks a
snake_case wire format which the Project and Workspace models map.
"""

from pydantic import TypeAdapter

from tfconsole.client.remote import RemoteOperationClient
from tfconsole.domain.models import CloudProvider, Project, Workspace
from tfconsole.logging_config import get_logger

logger = get_logger(__name__)

_project_list = TypeAdapter(list[Project])
_workspace_list = TypeAdapter(list[Workspace])


async def list_projects(client: RemoteOperationClient) -> list[Project]:
    """List all projects visible to the caller."""
    data = await client.request_json("GET", "/projects")
    return _project_list.validate_python(data or [])


async def get_project(client: RemoteOperationClient, project_id: int | str) -> Project:
    """Get a project by ID."""
    data = await client.request_json("GET", f"/projects/{project_id}")
    return Project.model_validate(data)


async def create_project(
    client: RemoteOperationClient,
    name: str,
    provider: CloudProvider | str,
    org_id: int,
    owner_id: int,
    state_bucket: str | None = None,
    description: str = "",
) -> Project:
    """Create a project owned by ``owner_id`` in ``org_id``."""
    provider = CloudProvider(provider)
    data = await client.request_json(
        "POST",
        "/projects",
        {
            "project_name": name,
            "description": description,
            "owner_id": owner_id,
            "cloud_provider_id": provider.provider_id,
            "org_id": org_id,
            "state_bucket": state_bucket or None,
        },
    )
    project = Project.model_validate(data)
    logger.info("Project created", project_id=project.id, name=project.name, provider=provider)
    return project


async def list_workspaces(
    client: RemoteOperationClient, project_id: int | str
) -> list[Workspace]:
    """List workspaces of a project."""
    data = await client.request_json("GET", f"/workspaces/project/{project_id}")
    return _workspace_list.validate_python(data or [])


async def create_workspace(
    client: RemoteOperationClient,
    project_id: int | str,
    name: str,
    environment: str = "",
    description: str = "",
) -> Workspace:
    """Create a workspace within a project."""
    data = await client.request_json(
        "POST",
        "/workspaces/",
        {
            "project_id": project_id,
            "workspace_name": name,
            "environment": environment,
            "description": description,
        },
    )
    workspace = Workspace.model_validate(data)
    logger.info("Workspace created", workspace_id=workspace.id, project_id=project_id, name=name)
    return workspace
