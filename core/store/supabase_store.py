# =============================================================================
# core/store/supabase_store.py - Supabase Persistence
# =============================================================================
# EarningsStore implementation over the Supabase (PostgREST) tables:
#
#   model_values                        live calculator values
#   rates                               kind/value rate rows
#   calculator_config                   per-model revenue share
#   calculator_platforms                platform catalog
#   users                               active models (role = 'modelo')
#   calculator_history                  archive
#   calculator_history_backups          pre-delete safety backups
#   calc_snapshots                      recovery snapshots
#   calculator_early_frozen_platforms   early-freeze marks
#   calculator_period_closure_status    closure state machine
#   period_closure_locks                in-flight closure locks
#
# Usage:
#   client = create_service_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
#   store = SupabaseEarningsStore(client)
# =============================================================================

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any

from supabase import Client

from core.models.closure import ClosureStatus, ClosureStatusRecord
from core.models.earnings import (
    ArchivedEarningRecord,
    BackupSnapshot,
    FrozenPlatformMark,
    ModelRevenueConfig,
    PlatformDefinition,
    RawEarningValue,
    SafetyBackupRecord,
)
from core.store.base import EarningsStore
from lib.period_dates import PeriodType
from lib.supabase_client import SupabaseClientError, is_unique_violation

logger = logging.getLogger(__name__)

# rates.kind -> ExchangeRateSet field
RATE_KINDS: dict[str, str] = {
    "USD→COP": "rate_usd_cop",
    "EUR→USD": "rate_eur_usd",
    "GBP→USD": "rate_gbp_usd",
}


class SupabaseEarningsStore(EarningsStore):
    """
    Supabase-backed persistence handle.

    Every method translates PostgREST failures into SupabaseClientError
    with a code naming the failed operation.
    """

    def __init__(self, client: Client):
        self.client = client

    def _execute(
        self,
        query: Any,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> Any:
        """Run a built query, wrapping any failure."""
        try:
            return query.execute()
        except SupabaseClientError:
            raise
        except Exception as e:
            raise SupabaseClientError(
                message=f"{message}: {e}",
                code=code,
                details=details,
            )

    # -------------------------------------------------------------------------
    # Reference data
    # -------------------------------------------------------------------------

    def fetch_active_rates(self) -> dict[str, float]:
        response = self._execute(
            self.client.table("rates")
            .select("kind, value")
            .eq("active", True)
            .is_("valid_to", "null")
            .order("valid_from", desc=True),
            code="FETCH_RATES_FAILED",
            message="Failed to fetch active rates",
        )

        rates: dict[str, float] = {}
        for row in response.data or []:
            field = RATE_KINDS.get(row.get("kind"))
            # Newest first: keep the first row of each kind
            if field and field not in rates and row.get("value") is not None:
                rates[field] = float(row["value"])
        return rates

    def fetch_rate_history(self) -> list[dict[str, Any]]:
        response = self._execute(
            self.client.table("rates")
            .select("*")
            .order("valid_from", desc=True),
            code="FETCH_RATE_HISTORY_FAILED",
            message="Failed to fetch rate history",
        )
        return response.data or []

    def fetch_model_config(self, model_id: str) -> ModelRevenueConfig | None:
        response = self._execute(
            self.client.table("calculator_config")
            .select("model_id, percentage_override, group_percentage, enabled_platforms, active")
            .eq("model_id", model_id)
            .eq("active", True)
            .limit(1),
            code="FETCH_CONFIG_FAILED",
            message="Failed to fetch model config",
            details={"model_id": model_id},
        )

        rows = response.data or []
        if not rows:
            return None

        row = dict(rows[0])
        row["enabled_platforms"] = row.get("enabled_platforms") or []
        return ModelRevenueConfig.model_validate(row)

    def fetch_platforms(self) -> list[PlatformDefinition]:
        response = self._execute(
            self.client.table("calculator_platforms")
            .select("id, name, currency, active")
            .eq("active", True),
            code="FETCH_PLATFORMS_FAILED",
            message="Failed to fetch platform catalog",
        )
        return [PlatformDefinition.model_validate(row) for row in response.data or []]

    def fetch_active_model_ids(self) -> list[str]:
        response = self._execute(
            self.client.table("users")
            .select("id")
            .eq("role", "modelo")
            .eq("is_active", True),
            code="FETCH_MODELS_FAILED",
            message="Failed to fetch active models",
        )
        return [row["id"] for row in response.data or []]

    # -------------------------------------------------------------------------
    # Live values
    # -------------------------------------------------------------------------

    def fetch_raw_values(self, model_id: str, start: date, end: date) -> list[RawEarningValue]:
        response = self._execute(
            self.client.table("model_values")
            .select("id, model_id, platform_id, period_date, value, updated_at")
            .eq("model_id", model_id)
            .gte("period_date", start.isoformat())
            .lte("period_date", end.isoformat()),
            code="FETCH_VALUES_FAILED",
            message="Failed to fetch model values",
            details={"model_id": model_id, "start": start.isoformat(), "end": end.isoformat()},
        )
        return [RawEarningValue.model_validate(row) for row in response.data or []]

    def delete_raw_values(self, model_id: str, start: date, end: date) -> int:
        response = self._execute(
            self.client.table("model_values")
            .delete()
            .eq("model_id", model_id)
            .gte("period_date", start.isoformat())
            .lte("period_date", end.isoformat()),
            code="DELETE_VALUES_FAILED",
            message="Failed to delete model values",
            details={"model_id": model_id, "start": start.isoformat(), "end": end.isoformat()},
        )
        deleted = len(response.data or [])
        logger.info(f"Deleted {deleted} model values for {model_id} ({start} .. {end})")
        return deleted

    # -------------------------------------------------------------------------
    # Archive
    # -------------------------------------------------------------------------

    def upsert_archive_records(self, records: list[ArchivedEarningRecord]) -> int:
        if not records:
            return 0

        rows = [record.model_dump(mode="json") for record in records]
        response = self._execute(
            self.client.table("calculator_history")
            .upsert(
                rows,
                on_conflict="model_id,platform_id,period_date,period_type",
                ignore_duplicates=False,
            ),
            code="ARCHIVE_WRITE_FAILED",
            message="Failed to write calculator history",
            details={"model_id": records[0].model_id, "rows": len(rows)},
        )
        return len(response.data or [])

    def fetch_archive_records(
        self,
        model_id: str,
        period_date: date,
        period_type: PeriodType,
    ) -> list[ArchivedEarningRecord]:
        response = self._execute(
            self.client.table("calculator_history")
            .select("*")
            .eq("model_id", model_id)
            .eq("period_date", period_date.isoformat())
            .eq("period_type", PeriodType(period_type).value),
            code="ARCHIVE_READ_FAILED",
            message="Failed to read calculator history",
            details={"model_id": model_id, "period_date": period_date.isoformat()},
        )
        return [ArchivedEarningRecord.model_validate(row) for row in response.data or []]

    # -------------------------------------------------------------------------
    # Safety backups
    # -------------------------------------------------------------------------

    def upsert_backup_records(self, records: list[SafetyBackupRecord]) -> int:
        if not records:
            return 0

        rows = [record.model_dump(mode="json", exclude={"created_at"}) for record in records]
        response = self._execute(
            self.client.table("calculator_history_backups")
            .upsert(
                rows,
                on_conflict="backup_key,platform_id,period_date",
                ignore_duplicates=False,
            ),
            code="BACKUP_WRITE_FAILED",
            message="Failed to write safety backup",
            details={"backup_key": records[0].backup_key, "rows": len(rows)},
        )
        return len(response.data or [])

    def fetch_backup_records(self, backup_key: str) -> list[SafetyBackupRecord]:
        response = self._execute(
            self.client.table("calculator_history_backups")
            .select("*")
            .eq("backup_key", backup_key),
            code="BACKUP_READ_FAILED",
            message="Failed to read safety backup",
            details={"backup_key": backup_key},
        )
        return [SafetyBackupRecord.model_validate(row) for row in response.data or []]

    def update_backup_flags(
        self,
        backup_key: str,
        verified: bool | None = None,
        deleted_from_model_values: bool | None = None,
    ) -> int:
        update_data: dict[str, Any] = {}
        if verified is not None:
            update_data["verified"] = verified
        if deleted_from_model_values is not None:
            update_data["deleted_from_model_values"] = deleted_from_model_values

        if not update_data:
            return 0

        response = self._execute(
            self.client.table("calculator_history_backups")
            .update(update_data)
            .eq("backup_key", backup_key),
            code="BACKUP_UPDATE_FAILED",
            message="Failed to update safety backup flags",
            details={"backup_key": backup_key, **update_data},
        )
        return len(response.data or [])

    # -------------------------------------------------------------------------
    # Recovery snapshots
    # -------------------------------------------------------------------------

    def upsert_snapshot(self, snapshot: BackupSnapshot) -> str:
        row = snapshot.model_dump(mode="json", exclude={"created_at"})
        self._execute(
            self.client.table("calc_snapshots")
            .upsert(row, on_conflict="period_key", ignore_duplicates=False),
            code="SNAPSHOT_WRITE_FAILED",
            message="Failed to write backup snapshot",
            details={"period_key": snapshot.period_key},
        )
        return snapshot.period_key

    def fetch_snapshot(self, period_key: str) -> BackupSnapshot | None:
        response = self._execute(
            self.client.table("calc_snapshots")
            .select("*")
            .eq("period_key", period_key)
            .limit(1),
            code="SNAPSHOT_READ_FAILED",
            message="Failed to read backup snapshot",
            details={"period_key": period_key},
        )
        rows = response.data or []
        return BackupSnapshot.model_validate(rows[0]) if rows else None

    # -------------------------------------------------------------------------
    # Early freeze
    # -------------------------------------------------------------------------

    def upsert_frozen_marks(self, marks: list[FrozenPlatformMark]) -> None:
        if not marks:
            return

        rows = [mark.model_dump(mode="json") for mark in marks]
        self._execute(
            self.client.table("calculator_early_frozen_platforms")
            .upsert(
                rows,
                on_conflict="period_date,model_id,platform_id",
                ignore_duplicates=True,
            ),
            code="FREEZE_WRITE_FAILED",
            message="Failed to freeze platforms",
            details={"model_id": marks[0].model_id, "platforms": [m.platform_id for m in marks]},
        )

    def fetch_frozen_platform_ids(self, period_date: date, model_id: str) -> list[str]:
        response = self._execute(
            self.client.table("calculator_early_frozen_platforms")
            .select("platform_id")
            .eq("period_date", period_date.isoformat())
            .eq("model_id", model_id),
            code="FREEZE_READ_FAILED",
            message="Failed to read frozen platforms",
            details={"model_id": model_id, "period_date": period_date.isoformat()},
        )
        return [row["platform_id"] for row in response.data or []]

    def frozen_mark_exists(self, period_date: date, model_id: str, platform_id: str) -> bool:
        response = self._execute(
            self.client.table("calculator_early_frozen_platforms")
            .select("id")
            .eq("period_date", period_date.isoformat())
            .eq("model_id", model_id)
            .eq("platform_id", platform_id)
            .limit(1),
            code="FREEZE_READ_FAILED",
            message="Failed to check frozen platform",
            details={"model_id": model_id, "platform_id": platform_id},
        )
        return bool(response.data)

    def platform_frozen_for_any_model(self, period_date: date, platform_id: str) -> bool:
        response = self._execute(
            self.client.table("calculator_early_frozen_platforms")
            .select("id")
            .eq("period_date", period_date.isoformat())
            .eq("platform_id", platform_id)
            .limit(1),
            code="FREEZE_READ_FAILED",
            message="Failed to check frozen platform",
            details={"platform_id": platform_id},
        )
        return bool(response.data)

    def delete_frozen_marks(
        self,
        model_id: str | None = None,
        period_dates: list[date] | None = None,
        exclude_period_date: date | None = None,
    ) -> int:
        if model_id is None and period_dates is None and exclude_period_date is None:
            return 0
        if period_dates is not None and not period_dates:
            return 0

        query = self.client.table("calculator_early_frozen_platforms").delete()
        if model_id is not None:
            query = query.eq("model_id", model_id)
        if period_dates is not None:
            query = query.in_("period_date", [d.isoformat() for d in period_dates])
        if exclude_period_date is not None:
            query = query.neq("period_date", exclude_period_date.isoformat())

        response = self._execute(
            query,
            code="FREEZE_DELETE_FAILED",
            message="Failed to delete frozen platform marks",
            details={"model_id": model_id},
        )
        return len(response.data or [])

    # -------------------------------------------------------------------------
    # Closure status
    # -------------------------------------------------------------------------

    def fetch_closure_status(self, period_date: date) -> ClosureStatusRecord | None:
        response = self._execute(
            self.client.table("calculator_period_closure_status")
            .select("period_date, period_type, status, metadata, updated_at")
            .eq("period_date", period_date.isoformat())
            .limit(1),
            code="STATUS_READ_FAILED",
            message="Failed to read closure status",
            details={"period_date": period_date.isoformat()},
        )
        rows = response.data or []
        if not rows:
            return None

        row = dict(rows[0])
        row["metadata"] = row.get("metadata") or {}
        return ClosureStatusRecord.model_validate(row)

    def fetch_period_dates_with_status(self, status: ClosureStatus) -> list[date]:
        response = self._execute(
            self.client.table("calculator_period_closure_status")
            .select("period_date")
            .eq("status", ClosureStatus(status).value),
            code="STATUS_READ_FAILED",
            message="Failed to read closure statuses",
            details={"status": ClosureStatus(status).value},
        )
        return [date.fromisoformat(row["period_date"][:10]) for row in response.data or []]

    def upsert_closure_status(self, record: ClosureStatusRecord) -> None:
        row = record.model_dump(mode="json")
        self._execute(
            self.client.table("calculator_period_closure_status")
            .upsert(row, on_conflict="period_date", ignore_duplicates=False),
            code="STATUS_WRITE_FAILED",
            message="Failed to write closure status",
            details={"period_date": row["period_date"], "status": row["status"]},
        )

    # -------------------------------------------------------------------------
    # Locks
    # -------------------------------------------------------------------------

    def try_acquire_lock(self, lock_key: str, operation: str, ttl_seconds: int) -> bool:
        now = datetime.now(timezone.utc)

        # Clear an abandoned lock left by a crashed run
        self._execute(
            self.client.table("period_closure_locks")
            .delete()
            .eq("lock_key", lock_key)
            .lt("expires_at", now.isoformat()),
            code="LOCK_CLEANUP_FAILED",
            message="Failed to clear expired closure lock",
            details={"lock_key": lock_key},
        )

        try:
            self.client.table("period_closure_locks").insert({
                "lock_key": lock_key,
                "operation_type": operation,
                "status": "active",
                "acquired_at": now.isoformat(),
                "expires_at": (now + timedelta(seconds=ttl_seconds)).isoformat(),
            }).execute()
        except Exception as e:
            if is_unique_violation(e):
                logger.warning(f"Closure lock already held: {lock_key}")
                return False
            raise SupabaseClientError(
                message=f"Failed to acquire closure lock: {e}",
                code="LOCK_ACQUIRE_FAILED",
                details={"lock_key": lock_key},
            )

        return True

    def release_lock(self, lock_key: str) -> None:
        self._execute(
            self.client.table("period_closure_locks")
            .delete()
            .eq("lock_key", lock_key),
            code="LOCK_RELEASE_FAILED",
            message="Failed to release closure lock",
            details={"lock_key": lock_key},
        )
