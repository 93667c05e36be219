# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .archive_service import ArchiveService, ArchiveAndResetSaga
from .backup_service import BackupService
from .closure_state import ClosureStatusService, TRANSITIONS, is_valid_transition
from .freeze_service import FreezeService
from .lock_service import ClosureLockService
from .period_closure_orchestrator import PeriodClosureOrchestrator
from .rates_service import RateConfigResolver, ResolvedModelConfig

__all__ = [
    "ArchiveService",
    "ArchiveAndResetSaga",
    "BackupService",
    "ClosureStatusService",
    "TRANSITIONS",
    "is_valid_transition",
    "FreezeService",
    "ClosureLockService",
    "PeriodClosureOrchestrator",
    "RateConfigResolver",
    "ResolvedModelConfig",
]
