# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - earnings.py: Raw values, rates, revenue config, archive/backup rows
# - closure.py: Closure states, status rows and operation results
#
# These models define the "contract" between the closure core and its callers.
# =============================================================================

# -----------------------------------------------------------------------------
# Earnings Models - Rows read and written by the closure
# -----------------------------------------------------------------------------
from .earnings import (
    ArchivedEarningRecord,
    BackupSnapshot,
    Currency,
    ExchangeRateSet,
    FrozenPlatformMark,
    ModelRevenueConfig,
    PlatformDefinition,
    RawEarningValue,
    SafetyBackupRecord,
)

# -----------------------------------------------------------------------------
# Closure Models - State machine and results
# -----------------------------------------------------------------------------
from .closure import (
    ArchiveResult,
    ClosureRunSummary,
    ClosureStatus,
    ClosureStatusRecord,
    FreezeStatus,
    ModelClosureOutcome,
    OperationResult,
    SnapshotResult,
)

# -----------------------------------------------------------------------------
# __all__ - Explicit public API
# -----------------------------------------------------------------------------
__all__ = [
    # Earnings
    "ArchivedEarningRecord",
    "BackupSnapshot",
    "Currency",
    "ExchangeRateSet",
    "FrozenPlatformMark",
    "ModelRevenueConfig",
    "PlatformDefinition",
    "RawEarningValue",
    "SafetyBackupRecord",
    # Closure
    "ArchiveResult",
    "ClosureRunSummary",
    "ClosureStatus",
    "ClosureStatusRecord",
    "FreezeStatus",
    "ModelClosureOutcome",
    "OperationResult",
    "SnapshotResult",
]
