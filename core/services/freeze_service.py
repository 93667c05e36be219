# =============================================================================
# core/services/freeze_service.py - Early-Freeze Manager
# =============================================================================
# Marks (model, platform) pairs immutable for a period before the general
# closure, and tells the calculator UI which inputs to disable.
#
# Marks are keyed by the first day of the period, so any date inside the
# period refers to the same marks. Frozen platforms are locked, not
# excluded: their values are still archived with the rest of the period.
#
# Usage:
#   service = FreezeService(store)
#   service.freeze_platforms_for_model(date(2025, 3, 15), model_id, ["big7"])
#   service.get_frozen_platforms_for_model(date(2025, 3, 10), model_id)  # ["big7"]
# =============================================================================

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from app.config import Settings, get_settings
from app.exceptions import ClosureException
from core.models.closure import ClosureStatus, FreezeStatus, OperationResult
from core.models.earnings import FrozenPlatformMark
from core.store.base import EarningsStore
from lib.period_dates import (
    EARLY_FREEZE_PLATFORMS,
    has_passed_early_freeze,
    local_now,
    period_range,
    period_start,
    period_type_for,
    to_date,
)

logger = logging.getLogger(__name__)


class FreezeService:
    """Reads and writes calculator_early_frozen_platforms."""

    def __init__(self, store: EarningsStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or get_settings()

    # -------------------------------------------------------------------------
    # Marks
    # -------------------------------------------------------------------------

    def freeze_platforms_for_model(
        self,
        period_date: date | str,
        model_id: str,
        platform_ids: list[str],
    ) -> OperationResult:
        """
        Freeze platforms for a model period.

        Idempotent: re-freezing an already frozen platform is a no-op.

        Returns:
            OperationResult with success=False and the storage error message
            if the write failed
        """
        start = period_start(period_date)
        unique_ids = list(dict.fromkeys(p.strip() for p in platform_ids if p and p.strip()))

        if not unique_ids:
            return OperationResult(success=True)

        frozen_at = datetime.now(timezone.utc)
        marks = [
            FrozenPlatformMark(
                period_date=start,
                model_id=model_id,
                platform_id=platform_id,
                frozen_at=frozen_at,
            )
            for platform_id in unique_ids
        ]

        try:
            self.store.upsert_frozen_marks(marks)
        except Exception as e:
            logger.error(f"Failed to freeze {unique_ids} for model {model_id}: {e}")
            return OperationResult(success=False, error=str(e))

        logger.info(f"Froze {len(marks)} platform(s) for model {model_id} in period {start}")
        return OperationResult(success=True)

    def is_platform_frozen(
        self,
        period_date: date | str,
        model_id: str,
        platform_id: str,
    ) -> bool:
        return self.store.frozen_mark_exists(period_start(period_date), model_id, platform_id)

    def get_frozen_platforms_for_model(
        self,
        period_date: date | str,
        model_id: str,
    ) -> list[str]:
        """Platform ids frozen in the store for a model period."""
        ids = self.store.fetch_frozen_platform_ids(period_start(period_date), model_id)
        return list(dict.fromkeys(ids))

    # -------------------------------------------------------------------------
    # Effective status for the UI
    # -------------------------------------------------------------------------

    def is_auto_frozen(self, period_date: date | str, now: datetime | None = None) -> bool:
        """
        Whether the early platforms are frozen by the clock alone.

        True on the period's last day once Berlin midnight plus the margin
        has passed, and on any day after the period ended.
        """
        current = local_now(now, self.settings.LOCAL_TIMEZONE)
        ref = to_date(period_date)
        _, end = period_range(ref, period_type_for(ref))

        if current.date() > end:
            return True
        if current.date() < end:
            return False

        return has_passed_early_freeze(
            current,
            margin_minutes=self.settings.AUTO_FREEZE_MARGIN_MINUTES,
            tz_name=self.settings.LOCAL_TIMEZONE,
            freeze_tz_name=self.settings.EARLY_FREEZE_TIMEZONE,
        )

    def get_platform_freeze_status(
        self,
        model_id: str,
        period_date: date | str | None = None,
        now: datetime | None = None,
    ) -> FreezeStatus:
        """
        Frozen platforms for the calculator UI.

        Merges stored marks with the clock-based early freeze, so the UI
        locks the early platforms even if the scheduled job has not run.
        """
        current = local_now(now, self.settings.LOCAL_TIMEZONE)
        ref = to_date(period_date) if period_date else current.date()
        start = period_start(ref)

        stored = self.get_frozen_platforms_for_model(start, model_id)
        auto = self.is_auto_frozen(start, current)

        frozen = list(stored)
        if auto:
            for platform_id in EARLY_FREEZE_PLATFORMS:
                if platform_id not in frozen:
                    frozen.append(platform_id)

        return FreezeStatus(
            model_id=model_id,
            period_date=start,
            frozen_platforms=frozen,
            frozen_in_store=len(stored),
            auto_detected=auto,
        )

    # -------------------------------------------------------------------------
    # Cleanup
    # -------------------------------------------------------------------------

    def cleanup_frozen_platforms(
        self,
        model_id: str | None = None,
        force: bool = False,
        today: date | None = None,
    ) -> int:
        """
        Remove marks that no longer apply.

        Default: marks of completed periods, and marks of any period other
        than the current one. With force=True, every mark of `model_id`.

        Returns:
            Number of marks deleted

        Raises:
            ClosureException: If force is requested without a model
        """
        if force:
            if not model_id:
                raise ClosureException(
                    message="Forced cleanup requires a model_id",
                    code="MODEL_REQUIRED",
                    status_code=400,
                    suggestion="Pass the model whose frozen platforms should be cleared",
                )
            deleted = self.store.delete_frozen_marks(model_id=model_id)
            logger.info(f"Force-cleared {deleted} frozen mark(s) for model {model_id}")
            return deleted

        current = today or local_now(tz_name=self.settings.LOCAL_TIMEZONE).date()
        current_start = period_start(current)

        completed = self.store.fetch_period_dates_with_status(ClosureStatus.COMPLETED)
        deleted = 0
        if completed:
            deleted += self.store.delete_frozen_marks(model_id=model_id, period_dates=completed)

        deleted += self.store.delete_frozen_marks(
            model_id=model_id,
            exclude_period_date=current_start,
        )

        logger.info(f"Cleaned up {deleted} stale frozen mark(s)")
        return deleted
