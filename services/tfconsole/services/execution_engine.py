"""Streaming execution of Terraform operation chains.

The orchestrator runs one chain at a time. Each step resolves the
project's credential, posts the workspace files to the backend and
appends the streamed output to a shared buffer as chunks arrive. The
first failing step stops the chain. Failures never propagate to the
caller: they end up in the status tracker and the output buffer.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable

from tfconsole.client.remote import RemoteOperationClient
from tfconsole.domain.models import (
    ChainResult,
    CredentialSelection,
    NoCredential,
    OperationContext,
    OperationKind,
    OperationStatus,
    Selected,
)
from tfconsole.errors import ChainRejectedError, ConfigurationError, TFConsoleError
from tfconsole.logging_config import get_logger
from tfconsole.services import credential_service
from tfconsole.services.chain_resolver import compute_chain
from tfconsole.services.status_tracker import OperationStatusTracker

logger = get_logger(__name__)

OutputListener = Callable[[str], None]
CredentialResolver = Callable[..., Awaitable[CredentialSelection]]


def operation_path(kind: OperationKind) -> str:
    return f"/terraform/{OperationKind(kind)}"


class OperationOutput:
    """Growable text buffer for one chain execution.

    Chunks are kept in arrival order. Listeners see every appended chunk
    as it lands, which is how callers render output in real time.
    """

    def __init__(self) -> None:
        self._parts: list[str] = []
        self._listeners: list[OutputListener] = []

    def subscribe(self, listener: OutputListener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def clear(self) -> None:
        self._parts.clear()

    def append(self, text: str) -> None:
        if not text:
            return
        self._parts.append(text)
        for listener in list(self._listeners):
            listener(text)

    def append_line(self, line: str) -> None:
        """Append ``line`` on a line of its own."""
        prefix = "\n" if self._parts and not self._parts[-1].endswith("\n") else ""
        self.append(f"{prefix}{line}\n")

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def __str__(self) -> str:
        return self.text

    def __len__(self) -> int:
        return sum(len(p) for p in self._parts)


class OperationOrchestrator:
    """Runs operation chains against the backend for one workspace session."""

    def __init__(
        self,
        client: RemoteOperationClient,
        tracker: OperationStatusTracker | None = None,
        output: OperationOutput | None = None,
        *,
        resolver: CredentialResolver | None = None,
        status_reset_seconds: float = 0,
    ) -> None:
        self.client = client
        self.tracker = tracker or OperationStatusTracker()
        self.output = output or OperationOutput()
        self._resolve = resolver or credential_service.resolve_credential
        self._status_reset_seconds = status_reset_seconds
        self._reset_handles: list[asyncio.TimerHandle] = []
        self._chain_active = False

    @property
    def busy(self) -> bool:
        """True while a chain is in flight (including credential lookup)."""
        return self._chain_active or self.tracker.is_any_running()

    def require_idle(self) -> None:
        if self.busy:
            raise ChainRejectedError("An operation chain is already running")

    def plan_chain(self, target: OperationKind) -> list[OperationKind]:
        return compute_chain(target, self.tracker.snapshot())

    async def run_target(self, target: OperationKind, context: OperationContext) -> ChainResult:
        """Resolve ``target``'s chain against current statuses and run it."""
        if self.busy:
            return self._rejected([OperationKind(target)])
        return await self.run_chain(self.plan_chain(target), context)

    async def run_chain(
        self, chain: Iterable[OperationKind], context: OperationContext
    ) -> ChainResult:
        """Run ``chain`` step by step, stopping at the first failure.

        Refused (``rejected=True``, buffer untouched) while another chain
        is in flight. Always settles normally.
        """
        steps = [OperationKind(k) for k in chain]
        if self.busy:
            return self._rejected(steps)
        if not steps:
            return ChainResult(chain=[], statuses=self.tracker.snapshot(), output=self.output.text)

        self._chain_active = True
        self.output.clear()
        result = ChainResult(chain=steps, statuses={})
        logger.info(
            "Operation chain started",
            chain=" → ".join(steps),
            project_id=context.project_id,
            workspace_id=context.workspace_id,
        )

        try:
            for kind in steps:
                error, dispatched = await self._run_step(kind, context)
                if error is not None:
                    result.failed_kind = kind
                    result.error = error
                    target = steps[-1]
                    if not dispatched and target != kind:
                        # Missing context or credential blocks the whole chain
                        self.tracker.set_result(target, False)
                    remaining = steps[steps.index(kind) + 1 :]
                    if remaining:
                        logger.info(
                            "Operation chain aborted",
                            failed=kind,
                            skipped=" → ".join(remaining),
                        )
                    break
        finally:
            self._chain_active = False

        result.statuses = self.tracker.snapshot()
        result.output = self.output.text
        logger.info(
            "Operation chain finished",
            chain=" → ".join(steps),
            succeeded=result.succeeded,
            failed=result.failed_kind,
        )
        return result

    async def _credential_for(self, context: OperationContext) -> int:
        if context.project_id is None or context.workspace_id is None:
            raise ConfigurationError("No project or workspace selected")

        selection = await self._resolve(self.client, context.org_id, context.provider)
        match selection:
            case NoCredential(reason=reason):
                raise ConfigurationError(f"No credential available: {reason}")
            case Selected(credential_id=credential_id):
                if (
                    not isinstance(credential_id, int)
                    or isinstance(credential_id, bool)
                    or credential_id <= 0
                ):
                    raise ConfigurationError(f"Invalid credential id: {credential_id!r}")
                return credential_id
        raise ConfigurationError("Credential resolution returned no result")

    async def _run_step(
        self, kind: OperationKind, context: OperationContext
    ) -> tuple[str | None, bool]:
        """Run one step.

        Returns ``(error, dispatched)``: ``error`` is None on success and
        ``dispatched`` tells whether the operation endpoint was called.
        """
        try:
            credential_id = await self._credential_for(context)
        except ConfigurationError as e:
            self._fail(kind, str(e), started=False)
            return str(e), False
        except Exception as e:
            logger.exception("Credential resolution failed", operation=kind)
            message = f"Credential resolution failed: {str(e) or type(e).__name__}"
            self._fail(kind, message, started=False)
            return message, False

        self.tracker.set_running(kind)
        logger.info("Operation started", operation=kind, credential_id=credential_id)

        try:
            stream = await self.client.open_stream(
                operation_path(kind), context.request_body(credential_id)
            )
            async with stream:
                async for text in stream:
                    self.output.append(text)
        except TFConsoleError as e:
            message = str(e)
            self._fail(kind, message, started=True)
            return message, True
        except Exception as e:
            logger.exception("Unexpected error while running operation", operation=kind)
            message = str(e) or type(e).__name__
            self._fail(kind, message, started=True)
            return message, True

        self.tracker.set_result(kind, True)
        logger.info("Operation succeeded", operation=kind)
        self._schedule_reset(kind)
        return None, True

    def _fail(self, kind: OperationKind, message: str, started: bool) -> None:
        self.output.append_line(f"Error: {message}")
        self.tracker.set_result(kind, False)
        logger.warning("Operation failed", operation=kind, error=message, dispatched=started)

    def _rejected(self, chain: list[OperationKind]) -> ChainResult:
        logger.warning("Operation chain rejected: another chain is running", chain=" → ".join(chain))
        return ChainResult(
            chain=chain,
            statuses=self.tracker.snapshot(),
            output=self.output.text,
            rejected=True,
            error="An operation chain is already running",
        )

    def _schedule_reset(self, kind: OperationKind) -> None:
        if self._status_reset_seconds <= 0:
            return
        loop = asyncio.get_running_loop()
        now = loop.time()
        # Drop handles that were cancelled or have already fired
        self._reset_handles = [
            h for h in self._reset_handles if not h.cancelled() and h.when() > now
        ]
        handle = loop.call_later(
            self._status_reset_seconds,
            self.tracker.reset_if_unchanged,
            kind,
            self.tracker.generation(kind),
        )
        self._reset_handles.append(handle)

    def reset(self) -> None:
        """Explicit "reset all": every kind back to idle, pending resets dropped.

        Refused with ChainRejectedError while a chain is in flight.
        """
        self.require_idle()
        self.cancel_pending_resets()
        self.tracker.reset()

    def cancel_pending_resets(self) -> None:
        for handle in self._reset_handles:
            handle.cancel()
        self._reset_handles.clear()

    def status_of(self, kind: OperationKind) -> OperationStatus:
        return self.tracker.status_of(kind)
