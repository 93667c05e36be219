# =============================================================================
# core/services/backup_service.py - Recovery Snapshots
# =============================================================================
# Point-in-time copy of a model period (raw values + full rate history +
# revenue config) in calc_snapshots, independent of the archive table and
# of the safety backup taken inside archive-and-reset.
#
# Snapshots are keyed by the logical period key
# ("<period start>_<period type>_<model id>"), so snapshotting the same
# period again overwrites the previous snapshot instead of adding one.
#
# Usage:
#   result = BackupService(store).create_backup_snapshot(model_id, "2025-03-15", "1-15")
#   result.snapshot_id  # "2025-03-01_1-15_<model id>"
# =============================================================================

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from core.models.closure import SnapshotResult
from core.models.earnings import BackupSnapshot
from core.store.base import EarningsStore
from lib.period_dates import PeriodType, logical_period_key, period_range

logger = logging.getLogger(__name__)


class BackupService:
    """Creates and reads recovery snapshots."""

    def __init__(self, store: EarningsStore):
        self.store = store

    def create_backup_snapshot(
        self,
        model_id: str,
        period_date: date | str,
        period_type: PeriodType | str,
    ) -> SnapshotResult:
        try:
            ptype = PeriodType(period_type)
            start, end = period_range(period_date, ptype)
            period_key = logical_period_key(start, ptype, model_id)

            values = self.store.fetch_raw_values(model_id, start, end)
            rates = self.store.fetch_rate_history()
            config = self.store.fetch_model_config(model_id)

            snapshot = BackupSnapshot(
                period_key=period_key,
                model_id=model_id,
                period_date=start,
                period_type=ptype,
                values=[v.model_dump(mode="json") for v in values],
                rates=rates,
                revenue_config=config.model_dump(mode="json") if config else None,
                created_at=datetime.now(timezone.utc),
            )
            snapshot_id = self.store.upsert_snapshot(snapshot)

        except Exception as e:
            logger.error(f"Snapshot failed for model {model_id} ({period_date}, {period_type}): {e}")
            return SnapshotResult(success=False, error=str(e))

        logger.info(f"Snapshot {snapshot_id}: {len(values)} value(s), {len(rates)} rate row(s)")
        return SnapshotResult(success=True, snapshot_id=snapshot_id)

    def get_snapshot(
        self,
        model_id: str,
        period_date: date | str,
        period_type: PeriodType | str,
    ) -> BackupSnapshot | None:
        return self.store.fetch_snapshot(logical_period_key(period_date, period_type, model_id))
