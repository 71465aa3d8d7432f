"""Tests for the operation status tracker."""

import pytest

from tfconsole.domain.models import OperationKind, OperationStatus
from tfconsole.errors import InvalidTransitionError
from tfconsole.services.status_tracker import OperationStatusTracker, can_transition

VALIDATE = OperationKind.VALIDATE
PLAN = OperationKind.PLAN


@pytest.fixture
def tracker() -> OperationStatusTracker:
    return OperationStatusTracker()


class TestTransitions:
    def test_everything_starts_idle(self, tracker):
        assert all(s == OperationStatus.IDLE for s in tracker.snapshot().values())
        assert set(tracker.snapshot()) == set(OperationKind)
        assert not tracker.is_any_running()

    def test_running_then_succeeded(self, tracker):
        tracker.set_running(VALIDATE)
        assert tracker.status_of(VALIDATE) == OperationStatus.RUNNING
        assert tracker.is_any_running()
        assert tracker.in_flight == {VALIDATE}

        tracker.set_result(VALIDATE, True)
        assert tracker.status_of(VALIDATE) == OperationStatus.SUCCEEDED
        assert not tracker.is_any_running()

    def test_set_running_twice_is_rejected(self, tracker):
        tracker.set_running(PLAN)
        with pytest.raises(InvalidTransitionError) as exc_info:
            tracker.set_running(PLAN)
        assert exc_info.value.current == OperationStatus.RUNNING

    def test_success_requires_running(self, tracker):
        with pytest.raises(InvalidTransitionError):
            tracker.set_result(VALIDATE, True)

    def test_failure_without_running(self, tracker):
        tracker.set_result(VALIDATE, False)
        assert tracker.status_of(VALIDATE) == OperationStatus.FAILED
        assert not tracker.is_any_running()

    def test_finished_kind_can_run_again(self, tracker):
        tracker.set_running(VALIDATE)
        tracker.set_result(VALIDATE, False)
        tracker.set_running(VALIDATE)
        assert tracker.status_of(VALIDATE) == OperationStatus.RUNNING

    def test_can_transition_table(self):
        assert can_transition(OperationStatus.IDLE, OperationStatus.RUNNING)
        assert not can_transition(OperationStatus.IDLE, OperationStatus.SUCCEEDED)
        assert not can_transition(OperationStatus.RUNNING, OperationStatus.RUNNING)
        assert not can_transition(OperationStatus.RUNNING, OperationStatus.IDLE)


class TestReset:
    def test_reset_returns_everything_to_idle(self, tracker):
        tracker.set_running(VALIDATE)
        tracker.set_result(VALIDATE, True)
        tracker.set_running(PLAN)

        tracker.reset()

        assert all(s == OperationStatus.IDLE for s in tracker.snapshot().values())
        assert not tracker.is_any_running()

    def test_reset_if_unchanged(self, tracker):
        tracker.set_running(VALIDATE)
        tracker.set_result(VALIDATE, True)
        generation = tracker.generation(VALIDATE)

        assert tracker.reset_if_unchanged(VALIDATE, generation)
        assert tracker.status_of(VALIDATE) == OperationStatus.IDLE

    def test_reset_skipped_when_touched_again(self, tracker):
        tracker.set_running(VALIDATE)
        tracker.set_result(VALIDATE, True)
        generation = tracker.generation(VALIDATE)
        tracker.set_running(VALIDATE)

        assert not tracker.reset_if_unchanged(VALIDATE, generation)
        assert tracker.status_of(VALIDATE) == OperationStatus.RUNNING
