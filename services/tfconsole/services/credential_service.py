"""Credential selection for Terraform operations.

Picks the one stored credential that authorizes operations for a project,
based on the organization's credentials and the project's cloud provider.
Selection is a pure function of the fetched list; nothing is stored.
"""

from pydantic import TypeAdapter, ValidationError

from tfconsole.client.remote import RemoteOperationClient
from tfconsole.domain.models import (
    DEFAULT_PROVIDER,
    CloudProvider,
    CredentialRecord,
    CredentialSelection,
    NoCredential,
    Selected,
)
from tfconsole.errors import TFConsoleError
from tfconsole.logging_config import get_logger

logger = get_logger(__name__)

MISSING_ORG = "missing org"
FETCH_FAILED = "fetch failed"
NO_CREDENTIALS = "no credentials for organization"
NO_MATCHING_CREDENTIALS = "no matching credentials for provider"

_credential_list = TypeAdapter(list[CredentialRecord])


def _valid_org_id(org_id: object) -> bool:
    return isinstance(org_id, int) and not isinstance(org_id, bool) and org_id > 0


async def fetch_credentials(
    client: RemoteOperationClient, org_id: int
) -> list[CredentialRecord]:
    """List an organization's credentials in stored order."""
    data = await client.request_json("GET", f"/credentials/org/{org_id}")
    return _credential_list.validate_python(data if data is not None else [])


def _normalize_provider(project_provider: CloudProvider | str | None) -> CloudProvider | None:
    """Map a project provider to a CloudProvider; unset means AWS, unknown means None."""
    if project_provider is None or not str(project_provider).strip():
        return DEFAULT_PROVIDER
    try:
        return CloudProvider(str(project_provider).strip().lower())
    except ValueError:
        return None


def select_credential(
    credentials: list[CredentialRecord],
    project_provider: CloudProvider | str | None,
) -> CredentialSelection:
    """Choose the first credential (stable order) matching the project's provider."""
    if not credentials:
        return NoCredential(NO_CREDENTIALS)

    provider = _normalize_provider(project_provider)
    if provider is None:
        return NoCredential(NO_MATCHING_CREDENTIALS)
    for credential in credentials:
        if credential.provider == provider:
            return Selected(credential.credential_id)
    return NoCredential(NO_MATCHING_CREDENTIALS)


async def resolve_credential(
    client: RemoteOperationClient,
    org_id: int | None,
    project_provider: CloudProvider | str | None,
) -> CredentialSelection:
    """Resolve the credential for an organization and project provider.

    Never raises for backend problems: an unreachable backend or an
    unparseable list yields ``NoCredential("fetch failed")``.
    """
    if not _valid_org_id(org_id):
        logger.warning("Credential resolution skipped", reason=MISSING_ORG)
        return NoCredential(MISSING_ORG)

    try:
        credentials = await fetch_credentials(client, org_id)  # type: ignore[arg-type]
    except (TFConsoleError, ValidationError) as e:
        logger.warning("Credential fetch failed", org_id=org_id, error=str(e))
        return NoCredential(FETCH_FAILED)

    selection = select_credential(credentials, project_provider)
    match selection:
        case Selected(credential_id=credential_id):
            logger.info(
                "Credential selected",
                org_id=org_id,
                provider=str(project_provider or DEFAULT_PROVIDER),
                credential_id=credential_id,
            )
        case NoCredential(reason=reason):
            logger.warning(
                "No credential available",
                org_id=org_id,
                provider=str(project_provider or DEFAULT_PROVIDER),
                reason=reason,
                available=len(credentials),
            )
    return selection
