# =============================================================================
# tests/test_closure_state.py - Closure State Machine Tests
# =============================================================================
# Run with: pytest tests/test_closure_state.py -v
# =============================================================================

from datetime import date

import pytest

from app.exceptions import InvalidTransitionError
from core.models.closure import ClosureStatus
from core.services.closure_state import (
    TRANSITIONS,
    ClosureStatusService,
    allowed_transitions,
    is_valid_transition,
)
from lib.supabase_client import SupabaseClientError

PERIOD = date(2025, 3, 1)


@pytest.fixture
def service(store):
    return ClosureStatusService(store)


def _walk(service, *states):
    for state in states:
        result = service.update_closure_status(PERIOD, "1-15", state)
        assert result.success, result.error


class TestTransitionTable:
    """Tests for the adjacency list itself."""

    def test_every_state_has_an_entry(self):
        assert set(TRANSITIONS) == set(ClosureStatus)

    def test_completed_is_terminal(self):
        assert TRANSITIONS[ClosureStatus.COMPLETED] == frozenset()

    def test_failed_only_returns_to_pending(self):
        assert TRANSITIONS[ClosureStatus.FAILED] == frozenset({ClosureStatus.PENDING})

    @pytest.mark.parametrize("state", [
        s for s in ClosureStatus if s not in (ClosureStatus.COMPLETED, ClosureStatus.FAILED)
    ])
    def test_every_active_state_can_fail(self, state):
        assert is_valid_transition(state, ClosureStatus.FAILED)

    def test_pending_cannot_jump_to_archiving(self):
        assert not is_valid_transition("pending", "archiving")

    def test_missing_row_counts_as_pending(self):
        assert is_valid_transition(None, "early_freezing")
        assert not is_valid_transition(None, "completed")

    def test_allowed_transitions_sorted(self):
        assert allowed_transitions("pending") == ["closing_calculators", "early_freezing", "failed"]


class TestUpdateClosureStatus:
    """Tests for recording transitions."""

    def test_creates_row_when_absent(self, service, store):
        result = service.update_closure_status(PERIOD, "1-15", "early_freezing", {"by": "test"})

        assert result.success
        record = store.statuses[PERIOD]
        assert record.status is ClosureStatus.EARLY_FREEZING
        assert record.metadata == {"by": "test"}
        assert record.updated_at is not None

    def test_full_happy_path(self, service, store):
        _walk(
            service,
            "early_freezing",
            "closing_calculators",
            "waiting_summary",
            "closing_summary",
            "archiving",
            "completed",
        )

        assert store.statuses[PERIOD].status is ClosureStatus.COMPLETED

    def test_rejects_pending_to_archiving(self, service, store):
        """Invalid jump returns an error and writes nothing."""
        result = service.update_closure_status(PERIOD, "1-15", "archiving")

        assert not result.success
        assert PERIOD not in store.statuses
        assert "archiving" in result.error

    def test_rejection_does_not_mutate_existing_row(self, service, store):
        _walk(service, "early_freezing")
        before = store.statuses[PERIOD]

        result = service.update_closure_status(PERIOD, "1-15", "completed", {"x": 1})

        assert not result.success
        assert store.statuses[PERIOD] == before

    def test_completed_is_final(self, service):
        _walk(service, "closing_calculators", "waiting_summary", "closing_summary",
              "archiving", "completed")

        for target in ClosureStatus:
            assert not service.update_closure_status(PERIOD, "1-15", target).success

    def test_failed_to_pending_is_allowed(self, service, store):
        """Manual retry path."""
        _walk(service, "early_freezing", "failed")

        result = service.update_closure_status(PERIOD, "1-15", "pending")

        assert result.success
        assert store.statuses[PERIOD].status is ClosureStatus.PENDING

    def test_failed_cannot_skip_to_archiving(self, service):
        _walk(service, "failed")

        assert not service.update_closure_status(PERIOD, "1-15", "archiving").success

    def test_self_transition_rejected(self, service):
        _walk(service, "early_freezing")

        assert not service.update_closure_status(PERIOD, "1-15", "early_freezing").success

    def test_metadata_is_merged(self, service, store):
        service.update_closure_status(PERIOD, "1-15", "early_freezing", {"a": 1})
        service.update_closure_status(PERIOD, "1-15", "closing_calculators", {"b": 2})

        assert store.statuses[PERIOD].metadata == {"a": 1, "b": 2}

    def test_any_date_of_period_addresses_same_row(self, service, store):
        service.update_closure_status(date(2025, 3, 9), "1-15", "early_freezing")

        assert store.statuses[PERIOD].status is ClosureStatus.EARLY_FREEZING

    def test_storage_error_returns_failure(self, service, store):
        store.fail_on["upsert_closure_status"] = SupabaseClientError("write failed")

        result = service.update_closure_status(PERIOD, "1-15", "early_freezing")

        assert not result.success
        assert "write failed" in result.error

    def test_invalid_status_value(self, service):
        result = service.update_closure_status(PERIOD, "1-15", "done")

        assert not result.success


class TestCheckTransition:
    """Tests for the raising variant used by the API."""

    def test_raises_with_allowed_states(self, service):
        with pytest.raises(InvalidTransitionError) as exc_info:
            service.check_transition(PERIOD, "archiving")

        assert exc_info.value.status_code == 409
        assert exc_info.value.details["current"] is None
        assert "early_freezing" in exc_info.value.details["allowed"]

    def test_returns_current_record(self, service):
        _walk(service, "early_freezing")

        record = service.check_transition(PERIOD, "closing_calculators")

        assert record.status is ClosureStatus.EARLY_FREEZING
