# =============================================================================
# app/routers/closure.py - Period Closure Endpoints
# =============================================================================
# Thin wrappers over the closure services for admins and the history UI.
#
# Endpoints:
#   POST /closure/archive              archive-and-reset one model period
#   POST /closure/snapshot             recovery snapshot of one model period
#   GET  /closure/status               closure state of a period
#   POST /closure/status               record a transition
#   POST /closure/manual-transition    admin recovery (e.g. failed -> pending)
#   POST /closure/close-period         run the full closure
#   POST /closure/early-freeze         run the early freeze
#   POST /closure/dxlive-freeze        run the DX Live freeze
#   GET  /closure/history/{model_id}   archived rows of a model period
#
# Result-returning operations answer {success: false, error} with a non-2xx
# status when they fail.
# =============================================================================

from datetime import date
from typing import Annotated, Any

from fastapi import APIRouter, Path, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from app.config import settings
from app.dependencies import (
    ArchiveServiceDep,
    BackupServiceDep,
    OrchestratorDep,
    StatusServiceDep,
)
from core.models.closure import ClosureStatus
from lib.period_dates import PeriodType, local_today, period_start, period_type_for

router = APIRouter()


# =============================================================================
# Request Models
# =============================================================================

class ModelPeriodRequest(BaseModel):
    """One model's period."""

    model_config = ConfigDict(protected_namespaces=())

    model_id: str = Field(..., description="Model user id")
    period_date: date = Field(..., examples=["2025-03-01"])
    period_type: PeriodType = Field(..., examples=["1-15"])


class StatusUpdateRequest(BaseModel):
    """Transition a period's closure state."""
    period_date: date
    period_type: PeriodType
    status: ClosureStatus
    metadata: dict[str, Any] | None = None


class ManualTransitionRequest(BaseModel):
    """Admin-driven transition."""
    period_date: date
    status: ClosureStatus
    metadata: dict[str, Any] | None = None


class RunRequest(BaseModel):
    """Options for the scheduled runs when triggered by hand."""
    testing: bool = Field(
        default=False,
        description="Skip clock guards and the summary wait",
    )


def _failed(status_code: int, error: str | None, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, **extra},
    )


# =============================================================================
# Archive & Snapshot
# =============================================================================

@router.post("/archive")
def archive_model_period(request: ModelPeriodRequest, service: ArchiveServiceDep):
    """
    Archive a model period and clear its live values.

    Live values are only deleted after the archive and the safety backup
    have both been verified.
    """
    result = service.atomic_archive_and_reset(
        request.model_id, request.period_date, request.period_type
    )
    if not result.success:
        return _failed(500, result.error, steps_completed=result.steps_completed)
    return result


@router.post("/snapshot")
def snapshot_model_period(request: ModelPeriodRequest, service: BackupServiceDep):
    """Create (or overwrite) the recovery snapshot of a model period."""
    result = service.create_backup_snapshot(
        request.model_id, request.period_date, request.period_type
    )
    if not result.success:
        return _failed(500, result.error)
    return result


# =============================================================================
# Status
# =============================================================================

@router.get("/status")
def get_closure_status(
    service: StatusServiceDep,
    period_date: Annotated[date | None, Query(description="Any date inside the period")] = None,
):
    """Closure state of a period; periods without a row are pending."""
    ref = period_date or local_today(tz_name=settings.LOCAL_TIMEZONE)
    record = service.get_status(ref)

    if record is None:
        return {
            "period_date": period_start(ref).isoformat(),
            "period_type": period_type_for(ref).value,
            "status": ClosureStatus.PENDING.value,
            "metadata": {},
            "updated_at": None,
        }
    return record.model_dump(mode="json")


@router.post("/status")
def update_closure_status(request: StatusUpdateRequest, service: StatusServiceDep):
    """
    Record a closure transition.

    Transitions outside the table are rejected with 409 and leave the
    stored state untouched.
    """
    start = period_start(request.period_date, request.period_type)
    service.check_transition(start, request.status)

    result = service.update_closure_status(
        request.period_date, request.period_type, request.status, request.metadata
    )
    if not result.success:
        return _failed(500, result.error)
    return result


@router.post("/manual-transition")
def manual_transition(request: ManualTransitionRequest, orchestrator: OrchestratorDep):
    """Admin recovery, e.g. moving a failed period back to pending."""
    result = orchestrator.manual_transition(request.period_date, request.status, request.metadata)
    if not result.success:
        return _failed(409, result.error)
    return result


# =============================================================================
# Scheduled Runs
# =============================================================================

@router.post("/close-period")
def close_period(orchestrator: OrchestratorDep, request: RunRequest | None = None):
    """Run the full closure of the period that just ended."""
    summary = orchestrator.close_period(testing=(request or RunRequest()).testing)
    if not summary.success:
        return JSONResponse(status_code=500, content=summary.model_dump(mode="json"))
    return summary


@router.post("/early-freeze")
def early_freeze(orchestrator: OrchestratorDep, request: RunRequest | None = None):
    """Freeze the early platforms of every active model."""
    summary = orchestrator.run_early_freeze(testing=(request or RunRequest()).testing)
    if not summary.success:
        return JSONResponse(status_code=500, content=summary.model_dump(mode="json"))
    return summary


@router.post("/dxlive-freeze")
def dxlive_freeze(orchestrator: OrchestratorDep, request: RunRequest | None = None):
    """Freeze DX Live for every active model."""
    summary = orchestrator.run_dxlive_freeze(testing=(request or RunRequest()).testing)
    if not summary.success:
        return JSONResponse(status_code=500, content=summary.model_dump(mode="json"))
    return summary


# =============================================================================
# History
# =============================================================================

@router.get("/history/{model_id}")
def get_history(
    model_id: Annotated[str, Path(description="Model user id")],
    period_date: Annotated[date, Query(description="Any date inside the period")],
    service: ArchiveServiceDep,
    period_type: Annotated[PeriodType | None, Query(description="Defaults to the half of period_date")] = None,
):
    """Archived rows of a closed model period."""
    ptype = period_type or period_type_for(period_date)
    records = service.get_archived_records(model_id, period_date, ptype)
    return {
        "model_id": model_id,
        "period_date": period_start(period_date, ptype).isoformat(),
        "period_type": ptype.value,
        "records": [r.model_dump(mode="json") for r in records],
    }
