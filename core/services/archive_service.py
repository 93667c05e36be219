# =============================================================================
# core/services/archive_service.py - Atomic Archive-and-Reset
# =============================================================================
# Moves one model's closed period from model_values into calculator_history.
#
# The work is an explicit saga: each named step runs only after the previous
# one returned, and any exception stops the run where it is. The only
# destructive step (delete_raw_values) comes after the archive has been
# written and verified and the raw rows have been backed up and re-verified.
# check_unchanged then re-reads the live rows; any row written since
# load_raw_values aborts the run before anything is deleted.
#
#   resolve_rates_and_config -> load_platform_catalog -> load_raw_values
#   -> consolidate -> compute -> write_archive -> verify_archive
#   -> safety_backup -> reverify -> check_unchanged -> delete_raw_values
#   -> mark_backup_deleted
#
# The whole run holds the "archive:<period key>" closure lock.
#
# Usage:
#   service = ArchiveService(store)
#   result = service.atomic_archive_and_reset(model_id, "2025-03-10", "1-15")
#   # ArchiveResult(success=True, archived=2, deleted=2, ...)
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from app.exceptions import ClosureInProgressError, InvalidPeriodError, VerificationError
from core.calculator import compute_platform_values
from core.models.closure import ArchiveResult
from core.models.earnings import (
    ArchivedEarningRecord,
    Currency,
    ExchangeRateSet,
    PlatformDefinition,
    RawEarningValue,
    SafetyBackupRecord,
)
from core.services.lock_service import ClosureLockService
from core.services.rates_service import RateConfigResolver, ResolvedModelConfig
from core.store.base import EarningsStore
from lib.period_dates import PeriodType, logical_period_key, period_range, to_date

logger = logging.getLogger(__name__)

ARCHIVE_LOCK_OPERATION = "archive"


def _round2(value: float) -> float:
    """Round half away from zero on the exact binary value."""
    return float(Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _updated_key(value: RawEarningValue) -> datetime:
    ts = value.updated_at
    if ts is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def _row_key(value: RawEarningValue) -> tuple:
    return (value.platform_id, value.period_date, value.value, _updated_key(value))


def consolidate_values(values: list[RawEarningValue]) -> list[RawEarningValue]:
    """
    Keep the most recently updated row per platform.

    Rows without updated_at lose against rows that have one; on equal
    timestamps the later row in `values` wins.
    """
    latest: dict[str, RawEarningValue] = {}
    for value in values:
        current = latest.get(value.platform_id)
        if current is None or _updated_key(value) >= _updated_key(current):
            latest[value.platform_id] = value

    return list(latest.values())


@dataclass
class ArchiveContext:
    """State carried between saga steps."""
    model_id: str
    period_type: PeriodType
    start: date
    end: date
    period_key: str
    rates: ExchangeRateSet | None = None
    config: ResolvedModelConfig | None = None
    platforms: dict[str, PlatformDefinition] = field(default_factory=dict)
    raw_values: list[RawEarningValue] = field(default_factory=list)
    consolidated: list[RawEarningValue] = field(default_factory=list)
    records: list[ArchivedEarningRecord] = field(default_factory=list)
    deleted: int = 0
    finished: bool = False


class ArchiveAndResetSaga:
    """
    Ordered steps of one archive-and-reset run.

    A step signals "nothing left to do" by setting ctx.finished; it signals
    failure by raising. run() returns the names of the steps that completed.
    """

    STEPS: tuple[str, ...] = (
        "resolve_rates_and_config",
        "load_platform_catalog",
        "load_raw_values",
        "consolidate",
        "compute",
        "write_archive",
        "verify_archive",
        "safety_backup",
        "reverify",
        "check_unchanged",
        "delete_raw_values",
        "mark_backup_deleted",
    )

    def __init__(self, store: EarningsStore, resolver: RateConfigResolver, ctx: ArchiveContext):
        self.store = store
        self.resolver = resolver
        self.ctx = ctx
        self.completed: list[str] = []

    def run(self) -> list[str]:
        for name in self.STEPS:
            step = getattr(self, f"_{name}")
            try:
                step()
            except Exception as e:
                logger.error(f"[{self.ctx.period_key}] step {name} failed: {e}")
                raise

            self.completed.append(name)
            logger.info(f"[{self.ctx.period_key}] step {name} ok")

            if self.ctx.finished:
                break

        return self.completed

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _resolve_rates_and_config(self) -> None:
        self.ctx.rates = self.resolver.resolve_rates()
        self.ctx.config = self.resolver.resolve_model_config(self.ctx.model_id)

    def _load_platform_catalog(self) -> None:
        self.ctx.platforms = {p.id: p for p in self.store.fetch_platforms()}

    def _load_raw_values(self) -> None:
        ctx = self.ctx
        ctx.raw_values = self.store.fetch_raw_values(ctx.model_id, ctx.start, ctx.end)

        if not ctx.raw_values:
            logger.info(f"[{ctx.period_key}] no raw values, nothing to archive")
            ctx.finished = True

    def _consolidate(self) -> None:
        self.ctx.consolidated = consolidate_values(self.ctx.raw_values)

    def _compute(self) -> None:
        ctx = self.ctx
        archived_at = datetime.now(timezone.utc)
        records: list[ArchivedEarningRecord] = []

        for raw in ctx.consolidated:
            platform = ctx.platforms.get(raw.platform_id)
            if platform is None:
                logger.warning(
                    f"[{ctx.period_key}] platform {raw.platform_id} not in catalog, treating as USD"
                )
                currency, name = Currency.USD, None
            else:
                currency, name = platform.currency, platform.name

            values = compute_platform_values(
                value=raw.value,
                platform_id=raw.platform_id,
                currency=currency,
                rates=ctx.rates,
                percentage=ctx.config.percentage,
                platform_name=name,
            )

            records.append(ArchivedEarningRecord(
                model_id=ctx.model_id,
                platform_id=raw.platform_id,
                period_date=ctx.start,
                period_type=ctx.period_type,
                value=raw.value,
                rate_eur_usd=ctx.rates.rate_eur_usd,
                rate_gbp_usd=ctx.rates.rate_gbp_usd,
                rate_usd_cop=ctx.rates.rate_usd_cop,
                platform_percentage=values.percentage,
                value_usd_bruto=_round2(values.usd_bruto),
                value_usd_modelo=_round2(values.usd_modelo),
                value_cop_modelo=_round2(values.cop_modelo),
                archived_at=archived_at,
                original_updated_at=raw.updated_at,
            ))

        ctx.records = records

    def _write_archive(self) -> None:
        self.store.upsert_archive_records(self.ctx.records)

    def _verify_archive(self) -> None:
        ctx = self.ctx
        expected_ids = {r.platform_id for r in ctx.records}

        stored = self.store.fetch_archive_records(ctx.model_id, ctx.start, ctx.period_type)
        matching = [r for r in stored if r.platform_id in expected_ids]
        stored_ids = {r.platform_id for r in matching}
        missing = sorted(expected_ids - stored_ids)

        if len(matching) != len(ctx.records) or missing:
            raise VerificationError(
                f"Archive verification failed: expected {len(ctx.records)} row(s), "
                f"found {len(matching)}; missing platforms: {', '.join(missing) or 'none'}",
                details={
                    "expected": len(ctx.records),
                    "actual": len(matching),
                    "missing_platform_ids": missing,
                },
            )

        null_fields = sorted(
            r.platform_id
            for r in matching
            if r.value_usd_bruto is None or r.value_usd_modelo is None or r.value_cop_modelo is None
        )
        if null_fields:
            raise VerificationError(
                f"Archive verification failed: null computed values for {', '.join(null_fields)}",
                details={"platform_ids_with_nulls": null_fields},
            )

        extra = len(stored) - len(matching)
        if extra:
            logger.info(f"[{ctx.period_key}] {extra} archive row(s) from earlier runs kept")

    def _backup_rows(self) -> list[SafetyBackupRecord]:
        ctx = self.ctx
        rates_snapshot = ctx.rates.as_snapshot()
        config_snapshot = ctx.config.as_snapshot()
        return [
            SafetyBackupRecord(
                backup_key=ctx.period_key,
                model_id=ctx.model_id,
                platform_id=raw.platform_id,
                period_date=raw.period_date,
                period_type=ctx.period_type,
                value=raw.value,
                original_updated_at=raw.updated_at,
                rates_snapshot=rates_snapshot,
                config_snapshot=config_snapshot,
            )
            for raw in ctx.raw_values
        ]

    def _count_backed_up(self) -> int:
        ctx = self.ctx
        raw_keys = {(r.platform_id, r.period_date) for r in ctx.raw_values}
        stored = self.store.fetch_backup_records(ctx.period_key)
        return len({(b.platform_id, b.period_date) for b in stored} & raw_keys)

    def _check_backup(self) -> None:
        backed_up = self._count_backed_up()
        expected = len(self.ctx.raw_values)
        if backed_up != expected:
            raise VerificationError(
                f"Safety backup incomplete: {backed_up} of {expected} raw row(s) backed up",
                details={"expected": expected, "actual": backed_up, "backup_key": self.ctx.period_key},
            )

    def _safety_backup(self) -> None:
        self.store.upsert_backup_records(self._backup_rows())
        self._check_backup()

    def _reverify(self) -> None:
        self._verify_archive()
        self._check_backup()
        self.store.update_backup_flags(self.ctx.period_key, verified=True)

    def _check_unchanged(self) -> None:
        ctx = self.ctx
        current = self.store.fetch_raw_values(ctx.model_id, ctx.start, ctx.end)

        loaded_keys = {_row_key(r) for r in ctx.raw_values}
        current_keys = {_row_key(r) for r in current}
        if len(current) != len(ctx.raw_values) or current_keys != loaded_keys:
            changed = sorted({key[0] for key in loaded_keys ^ current_keys})
            raise VerificationError(
                f"Raw values changed during the run: {len(current)} row(s) now, "
                f"{len(ctx.raw_values)} loaded; changed platforms: {', '.join(changed) or 'none'}",
                details={
                    "loaded": len(ctx.raw_values),
                    "current": len(current),
                    "changed_platform_ids": changed,
                },
            )

    def _delete_raw_values(self) -> None:
        ctx = self.ctx
        ctx.deleted = self.store.delete_raw_values(ctx.model_id, ctx.start, ctx.end)

        remaining = self.store.fetch_raw_values(ctx.model_id, ctx.start, ctx.end)
        if remaining:
            raise VerificationError(
                f"Delete incomplete: {len(remaining)} raw row(s) still present",
                details={"remaining": len(remaining), "deleted": ctx.deleted},
                suggestion=VerificationError.PARTIALLY_DELETED,
            )
        if ctx.deleted != len(ctx.raw_values):
            raise VerificationError(
                f"Delete count mismatch: deleted {ctx.deleted} row(s), "
                f"{len(ctx.raw_values)} archived and backed up",
                details={"deleted": ctx.deleted, "loaded": len(ctx.raw_values)},
                suggestion=VerificationError.PARTIALLY_DELETED,
            )

    def _mark_backup_deleted(self) -> None:
        self.store.update_backup_flags(self.ctx.period_key, deleted_from_model_values=True)


class ArchiveService:
    """Entry point for archive-and-reset and archive reads."""

    def __init__(
        self,
        store: EarningsStore,
        resolver: RateConfigResolver | None = None,
        locks: ClosureLockService | None = None,
    ):
        self.store = store
        self.resolver = resolver or RateConfigResolver(store)
        self.locks = locks or ClosureLockService(store)

    def atomic_archive_and_reset(
        self,
        model_id: str,
        period_date: date | str,
        period_type: PeriodType | str,
    ) -> ArchiveResult:
        """
        Archive a model period and clear its live values.

        Never raises: every failure comes back as success=False with the
        error message and the steps that had completed. Raw values are only
        deleted when every step before delete_raw_values succeeded.
        """
        try:
            ptype = PeriodType(period_type)
            start, end = period_range(to_date(period_date), ptype)
        except ValueError as e:
            error = InvalidPeriodError(str(period_date), str(period_type), str(e))
            logger.error(error.message)
            return ArchiveResult(success=False, error=error.message)

        ctx = ArchiveContext(
            model_id=model_id,
            period_type=ptype,
            start=start,
            end=end,
            period_key=logical_period_key(start, ptype, model_id),
        )
        saga = ArchiveAndResetSaga(self.store, self.resolver, ctx)

        logger.info(f"Archiving model {model_id} for {start}..{end} ({ptype.value})")

        try:
            with self.locks.hold(ARCHIVE_LOCK_OPERATION, ctx.period_key):
                saga.run()
        except ClosureInProgressError as e:
            logger.warning(e.message)
            return ArchiveResult(success=False, error=e.message)
        except VerificationError as e:
            return ArchiveResult(success=False, error=e.message, steps_completed=saga.completed)
        except Exception as e:
            return ArchiveResult(success=False, error=str(e), steps_completed=saga.completed)

        archived = len(ctx.records)
        logger.info(
            f"Archived model {model_id} ({ctx.period_key}): {archived} archived, {ctx.deleted} deleted"
        )
        return ArchiveResult(
            success=True,
            archived=archived,
            deleted=ctx.deleted,
            steps_completed=saga.completed,
        )

    def get_archived_records(
        self,
        model_id: str,
        period_date: date | str,
        period_type: PeriodType | str,
    ) -> list[ArchivedEarningRecord]:
        """History rows of a closed model period, for the history UI."""
        ptype = PeriodType(period_type)
        start, _ = period_range(to_date(period_date), ptype)
        return self.store.fetch_archive_records(model_id, start, ptype)
