# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# These are injected into route handlers using Depends().
#
# get_store() is the composition root: it is the only place the API builds
# a Supabase client. Tests replace it with an in-memory store through
# app.dependency_overrides[get_store].
# =============================================================================

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from app.config import get_settings
from core.services import (
    ArchiveService,
    BackupService,
    ClosureStatusService,
    FreezeService,
    PeriodClosureOrchestrator,
)
from core.store import EarningsStore, SupabaseEarningsStore
from lib.supabase_client import create_service_client


@lru_cache
def get_store() -> EarningsStore:
    """
    Get the persistence handle.

    Built once per process with the service_role key.
    """
    settings = get_settings()
    client = create_service_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
    return SupabaseEarningsStore(client)


StoreDep = Annotated[EarningsStore, Depends(get_store)]


def get_freeze_service(store: StoreDep) -> FreezeService:
    return FreezeService(store)


def get_archive_service(store: StoreDep) -> ArchiveService:
    return ArchiveService(store)


def get_backup_service(store: StoreDep) -> BackupService:
    return BackupService(store)


def get_status_service(store: StoreDep) -> ClosureStatusService:
    return ClosureStatusService(store)


def get_orchestrator(store: StoreDep) -> PeriodClosureOrchestrator:
    return PeriodClosureOrchestrator(store)


# Type aliases for dependency injection
FreezeServiceDep = Annotated[FreezeService, Depends(get_freeze_service)]
ArchiveServiceDep = Annotated[ArchiveService, Depends(get_archive_service)]
BackupServiceDep = Annotated[BackupService, Depends(get_backup_service)]
StatusServiceDep = Annotated[ClosureStatusService, Depends(get_status_service)]
OrchestratorDep = Annotated[PeriodClosureOrchestrator, Depends(get_orchestrator)]
