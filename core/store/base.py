# =============================================================================
# core/store/base.py - Persistence Contract
# =============================================================================
# Abstract persistence handle consumed by every closure service.
#
# Services receive an EarningsStore instance in their constructor instead of
# reaching for a global client:
#   - production: SupabaseEarningsStore(create_service_client(...))
#   - tests:      tests.fakes.InMemoryStore()
#
# Contract for implementations:
#   - Every failing read/write raises (SupabaseClientError for Supabase);
#     nothing is swallowed.
#   - upsert_* methods are idempotent on the natural keys documented below.
# =============================================================================

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Any

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
from lib.period_dates import PeriodType


class EarningsStore(ABC):
    """Storage operations needed by the period closure core."""

    # -------------------------------------------------------------------------
    # Reference data (read-only for the core)
    # -------------------------------------------------------------------------

    @abstractmethod
    def fetch_active_rates(self) -> dict[str, float]:
        """
        Active open-ended rates keyed by field name.

        Keys present are a subset of rate_usd_cop / rate_eur_usd /
        rate_gbp_usd; missing kinds are simply absent.
        """

    @abstractmethod
    def fetch_rate_history(self) -> list[dict[str, Any]]:
        """Every rate row, newest first (snapshot payload)."""

    @abstractmethod
    def fetch_model_config(self, model_id: str) -> ModelRevenueConfig | None:
        """Active revenue config of a model, or None."""

    @abstractmethod
    def fetch_platforms(self) -> list[PlatformDefinition]:
        """Active platform catalog."""

    @abstractmethod
    def fetch_active_model_ids(self) -> list[str]:
        """Ids of every active model user."""

    # -------------------------------------------------------------------------
    # Live values (model_values)
    # -------------------------------------------------------------------------

    @abstractmethod
    def fetch_raw_values(self, model_id: str, start: date, end: date) -> list[RawEarningValue]:
        """Raw rows of a model with start <= period_date <= end."""

    @abstractmethod
    def delete_raw_values(self, model_id: str, start: date, end: date) -> int:
        """Delete raw rows in the range; returns the number deleted."""

    # -------------------------------------------------------------------------
    # Archive (calculator_history), unique on
    # (model_id, platform_id, period_date, period_type)
    # -------------------------------------------------------------------------

    @abstractmethod
    def upsert_archive_records(self, records: list[ArchivedEarningRecord]) -> int:
        """Insert-or-replace archive rows; returns rows written."""

    @abstractmethod
    def fetch_archive_records(
        self,
        model_id: str,
        period_date: date,
        period_type: PeriodType,
    ) -> list[ArchivedEarningRecord]:
        """Archive rows of one model period (period_date = period start)."""

    # -------------------------------------------------------------------------
    # Safety backups (calculator_history_backups), unique on
    # (backup_key, platform_id, period_date)
    # -------------------------------------------------------------------------

    @abstractmethod
    def upsert_backup_records(self, records: list[SafetyBackupRecord]) -> int:
        """Insert-or-replace backup rows; returns rows written."""

    @abstractmethod
    def fetch_backup_records(self, backup_key: str) -> list[SafetyBackupRecord]:
        """Every backup row of a closure run."""

    @abstractmethod
    def update_backup_flags(
        self,
        backup_key: str,
        verified: bool | None = None,
        deleted_from_model_values: bool | None = None,
    ) -> int:
        """Set flags on every backup row of a run; returns rows updated."""

    # -------------------------------------------------------------------------
    # Recovery snapshots (calc_snapshots), unique on period_key
    # -------------------------------------------------------------------------

    @abstractmethod
    def upsert_snapshot(self, snapshot: BackupSnapshot) -> str:
        """Insert-or-replace a snapshot; returns its period_key."""

    @abstractmethod
    def fetch_snapshot(self, period_key: str) -> BackupSnapshot | None:
        """Snapshot by logical period key, or None."""

    # -------------------------------------------------------------------------
    # Early freeze (calculator_early_frozen_platforms), unique on
    # (period_date, model_id, platform_id)
    # -------------------------------------------------------------------------

    @abstractmethod
    def upsert_frozen_marks(self, marks: list[FrozenPlatformMark]) -> None:
        """Insert marks, ignoring ones that already exist."""

    @abstractmethod
    def fetch_frozen_platform_ids(self, period_date: date, model_id: str) -> list[str]:
        """Platform ids frozen for a model period."""

    @abstractmethod
    def frozen_mark_exists(self, period_date: date, model_id: str, platform_id: str) -> bool:
        """Whether one (model, platform) pair is frozen."""

    @abstractmethod
    def platform_frozen_for_any_model(self, period_date: date, platform_id: str) -> bool:
        """Whether a platform already has a mark for any model in the period."""

    @abstractmethod
    def delete_frozen_marks(
        self,
        model_id: str | None = None,
        period_dates: list[date] | None = None,
        exclude_period_date: date | None = None,
    ) -> int:
        """
        Delete marks matching every given filter; returns rows deleted.

        With no filters at all, deletes nothing.
        """

    # -------------------------------------------------------------------------
    # Closure status (calculator_period_closure_status), unique on period_date
    # -------------------------------------------------------------------------

    @abstractmethod
    def fetch_closure_status(self, period_date: date) -> ClosureStatusRecord | None:
        """Current state of a period's closure, or None."""

    @abstractmethod
    def fetch_period_dates_with_status(self, status: ClosureStatus) -> list[date]:
        """Period dates whose closure is in the given state."""

    @abstractmethod
    def upsert_closure_status(self, record: ClosureStatusRecord) -> None:
        """Create or overwrite the status row of a period."""

    # -------------------------------------------------------------------------
    # In-flight locks (period_closure_locks), unique on lock_key
    # -------------------------------------------------------------------------

    @abstractmethod
    def try_acquire_lock(self, lock_key: str, operation: str, ttl_seconds: int) -> bool:
        """
        Claim a lock; False if another live holder exists.

        Locks older than ttl_seconds are treated as abandoned and replaced.
        """

    @abstractmethod
    def release_lock(self, lock_key: str) -> None:
        """Drop a lock (no-op if absent)."""
