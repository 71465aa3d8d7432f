"""Generation history and the active file set for a workspace.

History is append-only from the client's point of view. The active file
set is always materialized from exactly one entry: the latest one after a
fetch, or a specific one after ``view``. Generate and restore never trust
their own response bodies; both re-fetch the canonical history instead.
"""

from pydantic import TypeAdapter

from tfconsole.client.remote import RemoteOperationClient
from tfconsole.config import settings
from tfconsole.domain.fileset import EMPTY_FILESET, FileSet
from tfconsole.domain.models import (
    DEFAULT_PROVIDER,
    CloudProvider,
    GeneratedContent,
    HistoryEntry,
    HistoryEntryDetail,
)
from tfconsole.errors import ConfigurationError, InvalidSnapshotError
from tfconsole.logging_config import get_logger

logger = get_logger(__name__)

_history_list = TypeAdapter(list[HistoryEntry])


class InfrastructureHistory:
    """Version history of one workspace plus the file set derived from it."""

    def __init__(
        self,
        client: RemoteOperationClient,
        workspace_id: int | str,
        user_id: int | str | None = None,
    ) -> None:
        self.client = client
        self.workspace_id = workspace_id
        self.user_id = user_id
        self.entries: list[HistoryEntry] = []
        self.active_files: FileSet = EMPTY_FILESET
        self.active_entry_id: int | str | None = None
        self.selected_file: str | None = None
        self.analysis: GeneratedContent | None = None

    # --- Derived state ---

    @property
    def has_infrastructure(self) -> bool:
        """False when there is no history or the latest entry has no snapshot."""
        return bool(self.entries) and self.entries[-1].has_infrastructure

    @property
    def current_version_index(self) -> int:
        """Number of entries at the last fetch (1-based index of the latest)."""
        return len(self.entries)

    @property
    def successful_version_count(self) -> int:
        return sum(1 for entry in self.entries if entry.has_infrastructure)

    def version_of(self, entry_id: int | str) -> int:
        """1-based position of ``entry_id`` in the history, 0 if unknown."""
        for index, entry in enumerate(self.entries, start=1):
            if str(entry.id) == str(entry_id):
                return index
        return 0

    def entry(self, entry_id: int | str) -> HistoryEntry | None:
        index = self.version_of(entry_id)
        return self.entries[index - 1] if index else None

    # --- Materialization ---

    def _materialize(self, entry_id: int | str | None, content: GeneratedContent | None) -> FileSet:
        try:
            files = content.file_set() if content is not None else EMPTY_FILESET
        except (TypeError, ValueError) as e:
            logger.warning(
                "Snapshot file tree is malformed",
                workspace_id=self.workspace_id,
                entry_id=entry_id,
                error=str(e),
            )
            raise InvalidSnapshotError(f"Snapshot {entry_id} has an invalid file tree: {e}") from e
        self.active_files = files
        self.active_entry_id = entry_id
        self.analysis = content
        self.selected_file = files.first_path()
        return files

    def edit(self, path: str, content: str) -> FileSet:
        """Apply a user edit to the active file set. History is untouched."""
        self.active_files = self.active_files.with_file(path, content)
        if self.selected_file is None:
            self.selected_file = path
        return self.active_files

    # --- Remote operations ---

    async def fetch_history(self) -> list[HistoryEntry]:
        """Fetch the workspace history (oldest first) and load the latest snapshot."""
        data = await self.client.request_json(
            "GET", f"/prompt-history/workspace/{self.workspace_id}"
        )
        self.entries = _history_list.validate_python(data or [])

        if self.has_infrastructure:
            latest = self.entries[-1]
            self._materialize(latest.id, latest.generated_content)
        else:
            self._materialize(None, None)

        logger.info(
            "History fetched",
            workspace_id=self.workspace_id,
            entries=len(self.entries),
            has_infrastructure=self.has_infrastructure,
        )
        return self.entries

    async def view(self, entry_id: int | str) -> FileSet:
        """Load a past snapshot into the active file set without changing history."""
        data = await self.client.request_json("GET", f"/prompt-history/{entry_id}")
        detail = HistoryEntryDetail.model_validate(data or {})
        files = self._materialize(entry_id, detail.generated_content)
        logger.info(
            "History entry viewed",
            workspace_id=self.workspace_id,
            entry_id=entry_id,
            files=len(files),
        )
        return files

    def _require_user(self) -> int | str:
        if self.user_id is None:
            raise ConfigurationError("A user id is required for this operation")
        return self.user_id

    async def restore(self, entry_id: int | str) -> list[HistoryEntry]:
        """Ask the backend to roll back to ``entry_id``, then re-fetch history."""
        user_id = self._require_user()
        await self.client.request_json(
            "POST",
            "/restore",
            params={
                "prompt_id": entry_id,
                "user_id": user_id,
                "workspace_id": self.workspace_id,
            },
        )
        logger.info("History entry restored", workspace_id=self.workspace_id, entry_id=entry_id)
        return await self.fetch_history()

    async def generate(
        self,
        prompt: str,
        provider: str | None = None,
        cloud_provider: CloudProvider | str | None = None,
    ) -> list[HistoryEntry]:
        """Submit a generation request, then re-fetch history."""
        if not prompt or not prompt.strip():
            raise ValueError("Prompt must not be empty")
        user_id = self._require_user()

        await self.client.request_json(
            "POST",
            "/terraform/generate",
            {
                "cloud_provider": str(cloud_provider or DEFAULT_PROVIDER),
                "prompt": prompt,
                "provider": provider or settings.operations.default_generation_provider,
                "user_id": user_id,
                "workspace_id": self.workspace_id,
            },
        )
        logger.info(
            "Generation submitted",
            workspace_id=self.workspace_id,
            cloud_provider=str(cloud_provider or DEFAULT_PROVIDER),
        )
        return await self.fetch_history()
