# =============================================================================
# core/services/closure_state.py - Closure State Machine
# =============================================================================
# Records the authoritative closure state of each period and refuses any
# transition that is not in TRANSITIONS.
#
#   pending             -> early_freezing | closing_calculators | failed
#   early_freezing      -> closing_calculators | failed
#   closing_calculators -> waiting_summary | failed
#   waiting_summary     -> closing_summary | failed
#   closing_summary     -> archiving | failed
#   archiving           -> completed | failed
#   completed           -> (terminal)
#   failed              -> pending (manual retry)
#
# A period without a status row is treated as `pending`. The state machine
# never advances by itself; the orchestrator and admin routes drive it.
#
# Usage:
#   service = ClosureStatusService(store)
#   result = service.update_closure_status(date(2025, 3, 1), "1-15", "early_freezing")
# =============================================================================

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any

from app.exceptions import InvalidTransitionError
from core.models.closure import ClosureStatus, ClosureStatusRecord, OperationResult
from core.store.base import EarningsStore
from lib.period_dates import PeriodType, period_start, to_date

logger = logging.getLogger(__name__)


TRANSITIONS: dict[ClosureStatus, frozenset[ClosureStatus]] = {
    ClosureStatus.PENDING: frozenset({
        ClosureStatus.EARLY_FREEZING,
        ClosureStatus.CLOSING_CALCULATORS,
        ClosureStatus.FAILED,
    }),
    ClosureStatus.EARLY_FREEZING: frozenset({
        ClosureStatus.CLOSING_CALCULATORS,
        ClosureStatus.FAILED,
    }),
    ClosureStatus.CLOSING_CALCULATORS: frozenset({
        ClosureStatus.WAITING_SUMMARY,
        ClosureStatus.FAILED,
    }),
    ClosureStatus.WAITING_SUMMARY: frozenset({
        ClosureStatus.CLOSING_SUMMARY,
        ClosureStatus.FAILED,
    }),
    ClosureStatus.CLOSING_SUMMARY: frozenset({
        ClosureStatus.ARCHIVING,
        ClosureStatus.FAILED,
    }),
    ClosureStatus.ARCHIVING: frozenset({
        ClosureStatus.COMPLETED,
        ClosureStatus.FAILED,
    }),
    ClosureStatus.COMPLETED: frozenset(),
    ClosureStatus.FAILED: frozenset({
        ClosureStatus.PENDING,
    }),
}


def allowed_transitions(current: ClosureStatus | str | None) -> list[str]:
    """Sorted next states from `current` (None means no row yet: pending)."""
    state = ClosureStatus(current) if current else ClosureStatus.PENDING
    return sorted(s.value for s in TRANSITIONS[state])


def is_valid_transition(current: ClosureStatus | str | None, target: ClosureStatus | str) -> bool:
    """
    Check a transition against the table.

    Example:
        is_valid_transition("pending", "archiving")   # False
        is_valid_transition("failed", "pending")      # True
        is_valid_transition(None, "early_freezing")   # True
    """
    state = ClosureStatus(current) if current else ClosureStatus.PENDING
    return ClosureStatus(target) in TRANSITIONS[state]


class ClosureStatusService:
    """Reads and writes calculator_period_closure_status through the transition table."""

    def __init__(self, store: EarningsStore):
        self.store = store

    def get_status(self, period_date: date | str) -> ClosureStatusRecord | None:
        """Status row of the period containing `period_date`, or None."""
        return self.store.fetch_closure_status(period_start(period_date))

    def check_transition(
        self,
        period_date: date | str,
        target: ClosureStatus | str,
    ) -> ClosureStatusRecord | None:
        """
        Validate moving a period to `target`.

        Returns the current record (None if the period has none yet).

        Raises:
            InvalidTransitionError: If the table does not allow the move
        """
        current = self.get_status(period_date)
        current_status = current.status if current else None

        if not is_valid_transition(current_status, target):
            raise InvalidTransitionError(
                current=current_status.value if current_status else None,
                target=ClosureStatus(target).value,
                allowed=allowed_transitions(current_status),
            )
        return current

    def update_closure_status(
        self,
        period_date: date | str,
        period_type: PeriodType | str,
        status: ClosureStatus | str,
        metadata: dict[str, Any] | None = None,
    ) -> OperationResult:
        """
        Record a state change for a period.

        Upserts the single row of the period (keyed by its first day).
        An invalid transition or a storage failure returns success=False
        and leaves the stored row untouched.
        """
        try:
            target = ClosureStatus(status)
            ptype = PeriodType(period_type)
            start = period_start(to_date(period_date), ptype)

            current = self.check_transition(start, target)

            merged: dict[str, Any] = dict(current.metadata) if current else {}
            if metadata:
                merged.update(metadata)

            record = ClosureStatusRecord(
                period_date=start,
                period_type=ptype,
                status=target,
                metadata=merged,
                updated_at=datetime.now(timezone.utc),
            )
            self.store.upsert_closure_status(record)

            previous = current.status.value if current else "none"
            logger.info(f"Closure {start} ({ptype.value}): {previous} -> {target.value}")
            return OperationResult(success=True)

        except InvalidTransitionError as e:
            logger.warning(f"Rejected closure transition for {period_date}: {e.message}")
            return OperationResult(success=False, error=e.message)
        except Exception as e:
            logger.error(f"Failed to update closure status for {period_date}: {e}")
            return OperationResult(success=False, error=str(e))
