"""Per-operation status state machine for a workspace session."""

from tfconsole.domain.models import OperationKind, OperationStatus
from tfconsole.errors import InvalidTransitionError
from tfconsole.logging_config import get_logger

logger = get_logger(__name__)

IDLE = OperationStatus.IDLE
RUNNING = OperationStatus.RUNNING
SUCCEEDED = OperationStatus.SUCCEEDED
FAILED = OperationStatus.FAILED

# Valid state transitions. A kind can fail without having run when its
# chain step is rejected before dispatch (missing credential, bad context).
VALID_TRANSITIONS: dict[OperationStatus, set[OperationStatus]] = {
    IDLE: {RUNNING, FAILED},
    RUNNING: {SUCCEEDED, FAILED},
    SUCCEEDED: {RUNNING, FAILED, IDLE},
    FAILED: {RUNNING, FAILED, IDLE},
}


def can_transition(current: OperationStatus, target: OperationStatus) -> bool:
    """Check if a status transition is valid."""
    return target in VALID_TRANSITIONS.get(current, set())


class OperationStatusTracker:
    """Holds the status of every operation kind plus the in-flight set.

    Statuses only change through explicit calls; nothing here transitions
    on its own. ``generation`` counts changes per kind so a delayed reset
    can tell whether the kind was touched again in the meantime.
    """

    def __init__(self) -> None:
        self._statuses: dict[OperationKind, OperationStatus] = {k: IDLE for k in OperationKind}
        self._in_flight: set[OperationKind] = set()
        self._generations: dict[OperationKind, int] = {k: 0 for k in OperationKind}

    def status_of(self, kind: OperationKind) -> OperationStatus:
        return self._statuses[OperationKind(kind)]

    def snapshot(self) -> dict[OperationKind, OperationStatus]:
        return dict(self._statuses)

    @property
    def in_flight(self) -> frozenset[OperationKind]:
        return frozenset(self._in_flight)

    def generation(self, kind: OperationKind) -> int:
        return self._generations[OperationKind(kind)]

    def is_any_running(self) -> bool:
        return bool(self._in_flight)

    def _transition(self, kind: OperationKind, target: OperationStatus) -> None:
        current = self._statuses[kind]
        if not can_transition(current, target):
            raise InvalidTransitionError(kind, current, target)
        self._statuses[kind] = target
        self._generations[kind] += 1
        logger.debug("Operation transitioned", operation=kind, from_status=current, to_status=target)

    def set_running(self, kind: OperationKind) -> None:
        """Mark ``kind`` running and add it to the in-flight set."""
        kind = OperationKind(kind)
        self._transition(kind, RUNNING)
        self._in_flight.add(kind)

    def set_result(self, kind: OperationKind, succeeded: bool) -> None:
        """Record the outcome of ``kind`` and remove it from the in-flight set.

        Success is only accepted for a running kind. Failure may also be
        recorded for a kind that never started.
        """
        kind = OperationKind(kind)
        self._transition(kind, SUCCEEDED if succeeded else FAILED)
        self._in_flight.discard(kind)

    def reset(self) -> None:
        """Set every kind back to idle and clear the in-flight set."""
        for kind in OperationKind:
            if self._statuses[kind] != IDLE:
                self._generations[kind] += 1
            self._statuses[kind] = IDLE
        self._in_flight.clear()
        logger.info("Operation statuses reset")

    def reset_if_unchanged(self, kind: OperationKind, generation: int) -> bool:
        """Return a finished kind to idle unless it changed since ``generation``."""
        kind = OperationKind(kind)
        if self._generations[kind] != generation:
            return False
        if self._statuses[kind] not in (SUCCEEDED, FAILED):
            return False
        self._transition(kind, IDLE)
        return True
