# =============================================================================
# app/routers/freeze.py - Early-Freeze Endpoints
# =============================================================================
# Used by the calculator UI to lock platform inputs and by admins to freeze
# or clean up marks by hand.
#
# Endpoints:
#   POST /freeze/cleanup                         remove stale marks
#   POST /freeze/{model_id}                      freeze platforms
#   GET  /freeze/{model_id}                      frozen platform ids
#   GET  /freeze/{model_id}/status               effective freeze status
#   GET  /freeze/{model_id}/{platform_id}        is one platform frozen
#
# period_date defaults to today in the local timezone.
# =============================================================================

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Path, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from app.config import settings
from app.dependencies import FreezeServiceDep
from lib.period_dates import local_today, period_start

router = APIRouter()


# =============================================================================
# Request/Response Models
# =============================================================================

class FreezeRequest(BaseModel):
    """Platforms to freeze for one model period."""
    period_date: date = Field(..., description="Any date inside the period")
    platform_ids: list[str] = Field(..., min_length=1, examples=[["big7", "superfoon"]])


class CleanupRequest(BaseModel):
    """Frozen-mark cleanup options."""
    model_id: str | None = Field(default=None, description="Limit cleanup to one model")
    force: bool = Field(default=False, description="Delete every mark of model_id")


def _period(period_date: date | None) -> date:
    return period_start(period_date or local_today(tz_name=settings.LOCAL_TIMEZONE))


ModelIdPath = Annotated[str, Path(description="Model user id")]
PeriodDateQuery = Annotated[date | None, Query(description="Any date inside the period")]


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/cleanup")
def cleanup_frozen_platforms(service: FreezeServiceDep, request: CleanupRequest | None = None):
    """
    Remove frozen marks that no longer apply.

    Deletes marks of completed periods and of periods other than the current
    one; with force=true, every mark of the given model.
    """
    options = request or CleanupRequest()
    deleted = service.cleanup_frozen_platforms(model_id=options.model_id, force=options.force)
    return {"success": True, "deleted": deleted}


@router.post("/{model_id}")
def freeze_platforms(model_id: ModelIdPath, request: FreezeRequest, service: FreezeServiceDep):
    """Freeze platforms for a model. Re-freezing is a no-op."""
    result = service.freeze_platforms_for_model(request.period_date, model_id, request.platform_ids)

    if not result.success:
        return JSONResponse(status_code=500, content=result.model_dump())

    return {
        "success": True,
        "model_id": model_id,
        "period_date": _period(request.period_date).isoformat(),
        "platform_ids": request.platform_ids,
    }


@router.get("/{model_id}")
def get_frozen_platforms(
    model_id: ModelIdPath,
    service: FreezeServiceDep,
    period_date: PeriodDateQuery = None,
):
    """Platform ids frozen in the store for a model period."""
    start = _period(period_date)
    return {
        "model_id": model_id,
        "period_date": start.isoformat(),
        "platform_ids": service.get_frozen_platforms_for_model(start, model_id),
    }


@router.get("/{model_id}/status")
def get_freeze_status(
    model_id: ModelIdPath,
    service: FreezeServiceDep,
    period_date: PeriodDateQuery = None,
):
    """
    Effective freeze status for the calculator UI.

    Includes early platforms frozen by the clock even if the scheduled
    job has not written their marks yet.
    """
    status = service.get_platform_freeze_status(model_id, period_date)
    return {**status.model_dump(mode="json"), "is_frozen": status.is_frozen}


@router.get("/{model_id}/{platform_id}")
def is_platform_frozen(
    model_id: ModelIdPath,
    platform_id: Annotated[str, Path(description="Platform id")],
    service: FreezeServiceDep,
    period_date: PeriodDateQuery = None,
):
    """Whether one platform is frozen for a model period."""
    start = _period(period_date)
    return {
        "model_id": model_id,
        "platform_id": platform_id,
        "period_date": start.isoformat(),
        "frozen": service.is_platform_frozen(start, model_id, platform_id),
    }
