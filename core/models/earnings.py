# =============================================================================
# core/models/earnings.py - Earnings Records
# =============================================================================
# These models mirror the rows the closure core reads and writes:
# - RawEarningValue: live, editable calculator value (model_values)
# - ExchangeRateSet: active USD/EUR/GBP rates (rates)
# - ModelRevenueConfig: per-model revenue share (calculator_config)
# - PlatformDefinition: platform catalog entry (calculator_platforms)
# - FrozenPlatformMark: early-freeze lock (calculator_early_frozen_platforms)
# - ArchivedEarningRecord: immutable history row (calculator_history)
# - SafetyBackupRecord: pre-delete copy of a raw row (calculator_history_backups)
# - BackupSnapshot: independent recovery snapshot (calc_snapshots)
#
# Lifecycle of one value:
#   RawEarningValue --(archive)--> ArchivedEarningRecord
#                   \-(backup)---> SafetyBackupRecord --(delete)--> flag set
# =============================================================================

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from lib.period_dates import PeriodType


class Currency(str, Enum):
    """Currencies platforms report earnings in."""
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"


class RawEarningValue(BaseModel):
    """
    A model's platform-reported value for one day bucket of an open period.

    Unique on (model_id, platform_id, period_date). Written by the
    calculator UI; read, backed up and finally deleted by the closure.
    """

    model_config = ConfigDict(protected_namespaces=())

    id: str | None = Field(default=None, description="Row id in model_values")
    model_id: str
    platform_id: str
    period_date: date
    value: float = Field(default=0.0, description="Value as typed by the model, in platform units")
    updated_at: datetime | None = None


class ExchangeRateSet(BaseModel):
    """
    The single active, open-ended set of conversion rates.

    Example:
        {"rate_usd_cop": 4000, "rate_eur_usd": 1.0, "rate_gbp_usd": 1.2}
    """

    rate_usd_cop: float = Field(..., gt=0)
    rate_eur_usd: float = Field(..., gt=0)
    rate_gbp_usd: float = Field(..., gt=0)
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    active: bool = True

    def as_snapshot(self) -> dict[str, float]:
        """Rates as stored alongside archived / backed-up rows."""
        return {
            "rate_usd_cop": self.rate_usd_cop,
            "rate_eur_usd": self.rate_eur_usd,
            "rate_gbp_usd": self.rate_gbp_usd,
        }


class ModelRevenueConfig(BaseModel):
    """
    Revenue share configuration of one model.

    Resolved percentage = percentage_override, else group_percentage, else
    the configured default (80).
    """

    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    percentage_override: float | None = Field(default=None, ge=0, le=100)
    group_percentage: float | None = Field(default=None, ge=0, le=100)
    enabled_platforms: list[str] = Field(default_factory=list)
    active: bool = True

    def resolved_percentage(self, default: float) -> float:
        if self.percentage_override is not None:
            return self.percentage_override
        if self.group_percentage is not None:
            return self.group_percentage
        return default


class PlatformDefinition(BaseModel):
    """Catalog entry: which currency a platform reports in."""

    id: str
    name: str | None = None
    currency: Currency = Currency.USD
    active: bool = True


class FrozenPlatformMark(BaseModel):
    """Marks a (model, platform) pair immutable for a period."""

    model_config = ConfigDict(protected_namespaces=())

    period_date: date
    model_id: str
    platform_id: str
    frozen_at: datetime | None = None


class ArchivedEarningRecord(BaseModel):
    """
    Immutable history row for one platform of one closed model period.

    Unique on (model_id, platform_id, period_date, period_type), where
    period_date is the first day of the period.
    """

    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    platform_id: str
    period_date: date
    period_type: PeriodType
    value: float
    rate_eur_usd: float
    rate_gbp_usd: float
    rate_usd_cop: float
    platform_percentage: float
    value_usd_bruto: float | None
    value_usd_modelo: float | None
    value_cop_modelo: float | None
    archived_at: datetime | None = None
    original_updated_at: datetime | None = None


class SafetyBackupRecord(BaseModel):
    """
    Copy of one raw row taken right before the live delete.

    `verified` is set once archive and backup have been re-checked together;
    `deleted_from_model_values` only after the live delete succeeded.
    """

    model_config = ConfigDict(protected_namespaces=())

    backup_key: str = Field(..., description="Logical period key of the closure run")
    model_id: str
    platform_id: str
    period_date: date = Field(..., description="Day bucket of the original raw row")
    period_type: PeriodType
    value: float
    original_updated_at: datetime | None = None
    rates_snapshot: dict[str, float] = Field(default_factory=dict)
    config_snapshot: dict[str, Any] = Field(default_factory=dict)
    verified: bool = False
    deleted_from_model_values: bool = False
    created_at: datetime | None = None


class BackupSnapshot(BaseModel):
    """
    Point-in-time recovery snapshot of a model period.

    Keyed by the logical period key, so re-snapshotting overwrites.
    """

    model_config = ConfigDict(protected_namespaces=())

    period_key: str
    model_id: str
    period_date: date
    period_type: PeriodType
    values: list[dict[str, Any]] = Field(default_factory=list)
    rates: list[dict[str, Any]] = Field(default_factory=list)
    revenue_config: dict[str, Any] | None = None
    created_at: datetime | None = None
