# =============================================================================
# core/services/period_closure_orchestrator.py - Scheduled Closure Runs
# =============================================================================
# Drives a period through the closure state machine on the clock:
#
#   run_early_freeze   (last day of period, Berlin midnight)
#       pending -> early_freezing -> closing_calculators
#       freezes EARLY_FREEZE_PLATFORMS for every active model
#
#   run_dxlive_freeze  (last day of period, DXLIVE_FREEZE_HOUR local)
#       freezes dxlive for every active model (no state change)
#
#   close_period       (day 1 / day 16, 00:00-00:15 local)
#       -> closing_calculators -> waiting_summary -> closing_summary
#       -> archiving -> completed
#       snapshot + atomic archive-and-reset per active model
#
# Any unexpected error during close_period records `failed`; a failed period
# is only retried after an admin moves it back to `pending`
# (manual_transition).
#
# Usage:
#   orchestrator = PeriodClosureOrchestrator(store)
#   summary = orchestrator.close_period()            # uses the wall clock
#   summary = orchestrator.close_period(now=..., testing=True)
# =============================================================================

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import Any

from app.config import Settings, get_settings
from app.exceptions import ClosureException
from core.models.closure import (
    ClosureRunSummary,
    ClosureStatus,
    ModelClosureOutcome,
    OperationResult,
)
from core.services.archive_service import ArchiveService
from core.services.backup_service import BackupService
from core.services.closure_state import ClosureStatusService
from core.services.freeze_service import FreezeService
from core.store.base import EarningsStore
from lib.period_dates import (
    DXLIVE_PLATFORM_ID,
    EARLY_FREEZE_PLATFORMS,
    PeriodType,
    get_period_to_close,
    is_closure_day,
    is_early_freeze_relevant_day,
    is_early_freeze_time,
    is_full_closure_time,
    local_now,
    period_start,
    period_type_for,
    to_date,
)

logger = logging.getLogger(__name__)

# States in which another close_period run is still working
IN_FLIGHT_STATES = frozenset({
    ClosureStatus.WAITING_SUMMARY,
    ClosureStatus.CLOSING_SUMMARY,
    ClosureStatus.ARCHIVING,
})


class PeriodClosureOrchestrator:
    """Runs the scheduled freeze and closure jobs against one store."""

    def __init__(
        self,
        store: EarningsStore,
        settings: Settings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.sleep = sleep

        self.status = ClosureStatusService(store)
        self.freeze = FreezeService(store, self.settings)
        self.archive = ArchiveService(store)
        self.backup = BackupService(store)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _now(self, now: datetime | None) -> datetime:
        return local_now(now, self.settings.LOCAL_TIMEZONE)

    def _advance(
        self,
        period_date: date,
        period_type: PeriodType,
        status: ClosureStatus,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Record a transition or raise."""
        result = self.status.update_closure_status(period_date, period_type, status, metadata)
        if not result.success:
            raise ClosureException(
                message=result.error or f"Could not move closure to {status.value}",
                code="STATUS_UPDATE_FAILED",
                status_code=409,
                details={"period_date": period_date.isoformat(), "target": status.value},
            )

    def _freeze_for_all_models(
        self,
        period_date: date,
        platform_ids: list[str],
    ) -> list[ModelClosureOutcome]:
        outcomes = []
        for model_id in self.store.fetch_active_model_ids():
            result = self.freeze.freeze_platforms_for_model(period_date, model_id, platform_ids)
            outcomes.append(ModelClosureOutcome(
                model_id=model_id,
                success=result.success,
                error=result.error,
            ))
        return outcomes

    @staticmethod
    def _summary(
        period_date: date,
        period_type: PeriodType,
        message: str,
        outcomes: list[ModelClosureOutcome],
    ) -> ClosureRunSummary:
        failed = sum(1 for o in outcomes if not o.success)
        return ClosureRunSummary(
            success=failed == 0,
            period_date=period_date,
            period_type=period_type,
            message=message,
            total=len(outcomes),
            succeeded=len(outcomes) - failed,
            failed=failed,
            outcomes=outcomes,
        )

    # -------------------------------------------------------------------------
    # Early freeze
    # -------------------------------------------------------------------------

    def run_early_freeze(
        self,
        now: datetime | None = None,
        testing: bool = False,
    ) -> ClosureRunSummary:
        """
        Freeze the early platforms of every active model for the current period.

        Idempotent per period: once the period has left `pending`, later
        calls only report already_done.
        """
        current = self._now(now)
        today = current.date()

        if not testing:
            if not is_early_freeze_relevant_day(today):
                return ClosureRunSummary(success=True, message="Not an early freeze day")
            if not is_early_freeze_time(
                current,
                tolerance_minutes=self.settings.EARLY_FREEZE_TOLERANCE_MINUTES,
                tz_name=self.settings.LOCAL_TIMEZONE,
                freeze_tz_name=self.settings.EARLY_FREEZE_TIMEZONE,
            ):
                return ClosureRunSummary(success=True, message="Outside the early freeze window")

        ptype = period_type_for(today)
        start = period_start(today, ptype)

        existing = self.status.get_status(start)
        if existing and existing.status is not ClosureStatus.PENDING:
            logger.info(f"Early freeze for {start} already done (status {existing.status.value})")
            return ClosureRunSummary(
                success=True,
                period_date=start,
                period_type=ptype,
                message=f"Already at {existing.status.value}",
                already_done=True,
            )

        try:
            self._advance(start, ptype, ClosureStatus.EARLY_FREEZING, {
                "early_freeze_started_at": datetime.now(timezone.utc).isoformat(),
            })

            outcomes = self._freeze_for_all_models(start, list(EARLY_FREEZE_PLATFORMS))
            summary = self._summary(start, ptype, "Early freeze completed", outcomes)

            self._advance(start, ptype, ClosureStatus.CLOSING_CALCULATORS, {
                "early_freeze_completed_at": datetime.now(timezone.utc).isoformat(),
                "early_freeze_models": summary.total,
                "early_freeze_failed": [o.model_id for o in outcomes if not o.success],
            })
        except Exception as e:
            logger.error(f"Early freeze for {start} failed: {e}")
            self.status.update_closure_status(start, ptype, ClosureStatus.FAILED, {"error": str(e)})
            return ClosureRunSummary(
                success=False,
                period_date=start,
                period_type=ptype,
                message="Early freeze failed",
                error=str(e),
            )

        logger.info(f"Early freeze for {start}: {summary.succeeded}/{summary.total} models")
        return summary

    def run_dxlive_freeze(
        self,
        now: datetime | None = None,
        testing: bool = False,
    ) -> ClosureRunSummary:
        """Freeze DX Live for every active model on the last day of the period."""
        current = self._now(now)
        today = current.date()

        if not testing:
            if not is_early_freeze_relevant_day(today):
                return ClosureRunSummary(success=True, message="Not the last day of a period")
            if current.hour != self.settings.DXLIVE_FREEZE_HOUR:
                return ClosureRunSummary(success=True, message="Outside the DX Live freeze hour")

        ptype = period_type_for(today)
        start = period_start(today, ptype)

        if self.store.platform_frozen_for_any_model(start, DXLIVE_PLATFORM_ID):
            return ClosureRunSummary(
                success=True,
                period_date=start,
                period_type=ptype,
                message="DX Live already frozen",
                already_done=True,
            )

        outcomes = self._freeze_for_all_models(start, [DXLIVE_PLATFORM_ID])
        logger.info(f"DX Live frozen for {len(outcomes)} model(s) in period {start}")
        return self._summary(start, ptype, "DX Live freeze completed", outcomes)

    # -------------------------------------------------------------------------
    # Full closure
    # -------------------------------------------------------------------------

    def close_period(
        self,
        now: datetime | None = None,
        testing: bool = False,
    ) -> ClosureRunSummary:
        """
        Close the period that just ended.

        With testing=True the clock guards are skipped and there is no
        wait between closing calculators and closing the summary.
        """
        current = self._now(now)
        today = current.date()

        if not testing:
            if not is_closure_day(today):
                return ClosureRunSummary(success=True, message="Not a closure day")
            if not is_full_closure_time(
                current,
                window_minutes=self.settings.FULL_CLOSURE_WINDOW_MINUTES,
                tz_name=self.settings.LOCAL_TIMEZONE,
            ):
                return ClosureRunSummary(success=True, message="Outside the closure window")

        period_date, ptype = get_period_to_close(today)

        existing = self.status.get_status(period_date)
        state = existing.status if existing else ClosureStatus.PENDING

        if state is ClosureStatus.COMPLETED:
            return ClosureRunSummary(
                success=True,
                period_date=period_date,
                period_type=ptype,
                message="Period already closed",
                already_done=True,
            )
        if state in IN_FLIGHT_STATES:
            return ClosureRunSummary(
                success=False,
                period_date=period_date,
                period_type=ptype,
                message=f"Closure already in progress ({state.value})",
                error="Closure already in progress",
            )
        if state is ClosureStatus.FAILED:
            return ClosureRunSummary(
                success=False,
                period_date=period_date,
                period_type=ptype,
                message="Previous closure failed; move the period back to pending to retry",
                error="Closure failed",
            )

        logger.info(f"Closing period {period_date} ({ptype.value})")

        try:
            if state is not ClosureStatus.CLOSING_CALCULATORS:
                self._advance(period_date, ptype, ClosureStatus.CLOSING_CALCULATORS, {
                    "closure_started_at": datetime.now(timezone.utc).isoformat(),
                })

            self._advance(period_date, ptype, ClosureStatus.WAITING_SUMMARY)
            if not testing and self.settings.SUMMARY_WAIT_SECONDS:
                self.sleep(self.settings.SUMMARY_WAIT_SECONDS)

            self._advance(period_date, ptype, ClosureStatus.CLOSING_SUMMARY)
            self._advance(period_date, ptype, ClosureStatus.ARCHIVING)

            outcomes = [
                self._close_model(model_id, period_date, ptype)
                for model_id in self.store.fetch_active_model_ids()
            ]
            summary = self._summary(period_date, ptype, "Period closed", outcomes)

            metadata = {
                "closure_finished_at": datetime.now(timezone.utc).isoformat(),
                "models_total": summary.total,
                "models_succeeded": summary.succeeded,
                "archived": sum(o.archived for o in outcomes),
                "deleted": sum(o.deleted for o in outcomes),
                "failed_models": {o.model_id: o.error for o in outcomes if not o.success},
            }

            if summary.failed:
                self._advance(period_date, ptype, ClosureStatus.FAILED, metadata)
                summary.message = f"{summary.failed} model(s) failed to close"
                summary.error = summary.message
                logger.error(f"Period {period_date}: {summary.message}")
                return summary

            self._advance(period_date, ptype, ClosureStatus.COMPLETED, metadata)

        except Exception as e:
            logger.error(f"Closure of {period_date} failed: {e}")
            self.status.update_closure_status(period_date, ptype, ClosureStatus.FAILED, {"error": str(e)})
            return ClosureRunSummary(
                success=False,
                period_date=period_date,
                period_type=ptype,
                message="Closure failed",
                error=str(e),
            )

        # The period is already completed; a cleanup failure is retried by the daily cleanup job
        try:
            removed = self.freeze.cleanup_frozen_platforms(today=today)
        except Exception as e:
            logger.error(f"Period {period_date} closed; frozen mark cleanup failed: {e}")
        else:
            logger.info(f"Period {period_date} closed; {removed} frozen mark(s) cleaned up")
        return summary

    def _close_model(
        self,
        model_id: str,
        period_date: date,
        period_type: PeriodType,
    ) -> ModelClosureOutcome:
        """Snapshot, then archive-and-reset, one model. No snapshot, no archive."""
        snapshot = self.backup.create_backup_snapshot(model_id, period_date, period_type)
        if not snapshot.success:
            return ModelClosureOutcome(
                model_id=model_id,
                success=False,
                error=f"Snapshot failed: {snapshot.error}",
            )

        result = self.archive.atomic_archive_and_reset(model_id, period_date, period_type)
        return ModelClosureOutcome(
            model_id=model_id,
            success=result.success,
            archived=result.archived,
            deleted=result.deleted,
            snapshot_id=snapshot.snapshot_id,
            error=result.error,
        )

    # -------------------------------------------------------------------------
    # Admin
    # -------------------------------------------------------------------------

    def manual_transition(
        self,
        period_date: date | str,
        target: ClosureStatus | str,
        metadata: dict[str, Any] | None = None,
    ) -> OperationResult:
        """Admin recovery, e.g. failed -> pending; still bound by the transition table."""
        ref = to_date(period_date)
        payload = {
            **(metadata or {}),
            "manual": True,
            "manual_at": datetime.now(timezone.utc).isoformat(),
        }
        return self.status.update_closure_status(ref, period_type_for(ref), target, payload)
