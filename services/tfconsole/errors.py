"""
Exception types shared across tfconsole components.

Failures inside an operation chain never escape the execution engine;
these types are raised by the lower layers and converted to status and
output updates at the chain-step boundary.
"""


class TFConsoleError(Exception):
    """Base exception for tfconsole."""


class ConfigurationError(TFConsoleError):
    """Raised when required context (org, credential, workspace) is missing or invalid."""


class RemoteOperationError(TFConsoleError):
    """Raised when the backend answers with a non-2xx status or cannot be reached.

    ``status`` is None for transport failures (no response received).
    """

    def __init__(self, status: int | None, detail: str) -> None:
        self.status = status
        self.detail = detail
        super().__init__(detail)


class StreamError(TFConsoleError):
    """Raised when a streamed response body is missing or fails mid-read."""


class InvalidTransitionError(TFConsoleError):
    """Raised when an operation status change is not permitted."""

    def __init__(self, kind: str, current: str, target: str) -> None:
        self.kind = kind
        self.current = current
        self.target = target
        super().__init__(f"Invalid transition for {kind}: {current} → {target}")


class ChainRejectedError(TFConsoleError):
    """Raised when a new chain is requested while another is in flight."""


class InvalidSnapshotError(TFConsoleError):
    """Raised when a history snapshot's file tree cannot be loaded."""
