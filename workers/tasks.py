# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Scheduled and on-demand period closure tasks.
#
# Tasks:
# - early_freeze: Freeze early platforms at Berlin midnight (beat)
# - dxlive_freeze: Freeze DX Live on the last day of a period (beat)
# - close_period: Full closure on day 1 / 16 (beat)
# - cleanup_frozen_platforms: Drop stale frozen marks (beat)
# - archive_model_period: Snapshot + archive one model period (on demand)
#
# Closure tasks are never retried automatically: a failed run leaves the
# period in `failed` and waits for an admin.
# =============================================================================

import logging
from functools import lru_cache
from typing import Any

from celery import shared_task

from app.config import settings
from core.services import ArchiveService, BackupService, FreezeService, PeriodClosureOrchestrator
from core.store import EarningsStore, SupabaseEarningsStore
from lib.supabase_client import create_service_client

logger = logging.getLogger(__name__)


@lru_cache
def get_store() -> EarningsStore:
    """Persistence handle shared by the tasks of one worker process."""
    client = create_service_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
    return SupabaseEarningsStore(client)


# =============================================================================
# Scheduled Tasks
# =============================================================================

@shared_task(bind=True, name="workers.tasks.early_freeze", max_retries=0)
def early_freeze(self, testing: bool = False) -> dict[str, Any]:
    """Freeze EARLY_FREEZE_PLATFORMS for every active model."""
    summary = PeriodClosureOrchestrator(get_store()).run_early_freeze(testing=testing)
    logger.info(f"Early freeze: {summary.message}")
    return summary.model_dump(mode="json")


@shared_task(bind=True, name="workers.tasks.dxlive_freeze", max_retries=0)
def dxlive_freeze(self, testing: bool = False) -> dict[str, Any]:
    """Freeze DX Live for every active model."""
    summary = PeriodClosureOrchestrator(get_store()).run_dxlive_freeze(testing=testing)
    logger.info(f"DX Live freeze: {summary.message}")
    return summary.model_dump(mode="json")


@shared_task(
    bind=True,
    name="workers.tasks.close_period",
    max_retries=0,
    time_limit=3600,
    soft_time_limit=3500,
)
def close_period(self, testing: bool = False) -> dict[str, Any]:
    """
    Close the period that just ended.

    Returns:
        ClosureRunSummary as a dict (success, period, per-model outcomes)
    """
    summary = PeriodClosureOrchestrator(get_store()).close_period(testing=testing)

    if summary.success:
        logger.info(f"Close period {summary.period_date}: {summary.message}")
    else:
        logger.error(f"Close period {summary.period_date}: {summary.error or summary.message}")

    return summary.model_dump(mode="json")


@shared_task(bind=True, name="workers.tasks.cleanup_frozen_platforms", max_retries=0)
def cleanup_frozen_platforms(self, model_id: str | None = None, force: bool = False) -> dict[str, Any]:
    """Delete frozen marks of completed and past periods."""
    deleted = FreezeService(get_store()).cleanup_frozen_platforms(model_id=model_id, force=force)
    return {"success": True, "deleted": deleted}


# =============================================================================
# On-demand Tasks
# =============================================================================

@shared_task(bind=True, name="workers.tasks.archive_model_period", max_retries=0)
def archive_model_period(
    self,
    model_id: str,
    period_date: str,
    period_type: str,
) -> dict[str, Any]:
    """
    Snapshot and archive one model period.

    Args:
        model_id: Model user id
        period_date: ISO date inside the period
        period_type: "1-15" or "16-31"

    Returns:
        Dict with success, archived, deleted, snapshot_id, error
    """
    store = get_store()

    snapshot = BackupService(store).create_backup_snapshot(model_id, period_date, period_type)
    if not snapshot.success:
        return {"success": False, "error": f"Snapshot failed: {snapshot.error}"}

    result = ArchiveService(store).atomic_archive_and_reset(model_id, period_date, period_type)
    return {**result.model_dump(mode="json"), "snapshot_id": snapshot.snapshot_id}
