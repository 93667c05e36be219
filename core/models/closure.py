# =============================================================================
# core/models/closure.py - Closure State & Result Schemas
# =============================================================================
# These models define the contract between the closure core and its callers
# (HTTP routes, Celery tasks):
# - ClosureStatus: state machine states
# - ClosureStatusRecord: one row per period in calculator_period_closure_status
# - OperationResult / ArchiveResult / SnapshotResult: {success, error?} results
# - FreezeStatus: effective frozen platforms shown to the calculator UI
# - ModelClosureOutcome / ClosureRunSummary: orchestrator bookkeeping
# =============================================================================

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from lib.period_dates import PeriodType


class ClosureStatus(str, Enum):
    """
    States of a period closure.

    State machine:
        pending -> early_freezing -> closing_calculators -> waiting_summary
                -> closing_summary -> archiving -> completed
        (any non-terminal state) -> failed -> pending (manual retry)
    """
    PENDING = "pending"
    EARLY_FREEZING = "early_freezing"
    CLOSING_CALCULATORS = "closing_calculators"
    WAITING_SUMMARY = "waiting_summary"
    CLOSING_SUMMARY = "closing_summary"
    ARCHIVING = "archiving"
    COMPLETED = "completed"
    FAILED = "failed"


class ClosureStatusRecord(BaseModel):
    """Authoritative state of one period's closure."""

    period_date: date
    period_type: PeriodType
    status: ClosureStatus
    metadata: dict[str, Any] = Field(default_factory=dict)
    updated_at: datetime | None = None


# =============================================================================
# Operation Results
# =============================================================================

class OperationResult(BaseModel):
    """Generic {success, error?} result."""
    success: bool
    error: str | None = None


class ArchiveResult(BaseModel):
    """
    Result of an archive-and-reset run for one model period.

    Example:
        {"success": true, "archived": 2, "deleted": 2, "error": null,
         "steps_completed": ["resolve_rates_and_config", ..., "mark_backup_deleted"]}
    """
    success: bool
    archived: int = 0
    deleted: int = 0
    error: str | None = None
    steps_completed: list[str] = Field(default_factory=list)


class SnapshotResult(BaseModel):
    """Result of a backup snapshot; snapshot_id is the logical period key."""
    success: bool
    snapshot_id: str | None = None
    error: str | None = None


class FreezeStatus(BaseModel):
    """Frozen platforms the calculator UI must disable for a model."""

    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    period_date: date
    frozen_platforms: list[str] = Field(default_factory=list)
    frozen_in_store: int = 0
    auto_detected: bool = False

    @property
    def is_frozen(self) -> bool:
        return bool(self.frozen_platforms)


# =============================================================================
# Orchestrator Bookkeeping
# =============================================================================

class ModelClosureOutcome(BaseModel):
    """What happened to one model during a scheduled run."""

    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    success: bool
    archived: int = 0
    deleted: int = 0
    snapshot_id: str | None = None
    error: str | None = None


class ClosureRunSummary(BaseModel):
    """Summary returned by the scheduled closure / freeze runs."""
    success: bool
    period_date: date | None = None
    period_type: PeriodType | None = None
    message: str = ""
    already_done: bool = False
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    outcomes: list[ModelClosureOutcome] = Field(default_factory=list)
    error: str | None = None
