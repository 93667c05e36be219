# =============================================================================
# app/exceptions.py - Custom Exceptions and Handlers
# =============================================================================
# Centralized exception hierarchy for period closure.
# Following the principle: "Errors should tell HOW to fix, not just WHAT failed."
#
# Services raise these. Result-returning operations fold them into
# {success, error} objects; routes let the FastAPI handlers below render them.
# =============================================================================

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class ClosureException(Exception):
    """
    Base exception for the period closure core.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "CLOSURE_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "detail": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# State Machine Exceptions
# =============================================================================

class InvalidTransitionError(ClosureException):
    """Raised when a closure status change is not in the transition table."""

    def __init__(self, current: str | None, target: str, allowed: list[str]):
        super().__init__(
            message=f"Invalid closure transition: {current or 'none'} -> {target}",
            code="INVALID_TRANSITION",
            status_code=409,
            suggestion=(
                f"Allowed next states: {', '.join(allowed)}"
                if allowed
                else "This state is terminal"
            ),
            details={"current": current, "target": target, "allowed": allowed}
        )


class InvalidPeriodError(ClosureException):
    """Raised when a period date / type pair cannot be interpreted."""

    def __init__(self, period_date: str, period_type: str | None, error: str):
        super().__init__(
            message=f"Invalid period: {period_date} ({period_type}): {error}",
            code="INVALID_PERIOD",
            status_code=400,
            suggestion="Use an ISO date (YYYY-MM-DD) and a period type of '1-15' or '16-31'",
            details={"period_date": period_date, "period_type": period_type}
        )


# =============================================================================
# Archive Exceptions
# =============================================================================

class VerificationError(ClosureException):
    """Raised when an archive or backup check does not match the live rows."""

    UNTOUCHED = "Live values were left untouched; inspect the archive/backup tables and re-run the closure"
    PARTIALLY_DELETED = (
        "Live values were deleted after the backup was verified; "
        "restore any missing rows from calculator_history_backups using the backup key"
    )

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        suggestion: str | None = None,
    ):
        super().__init__(
            message=message,
            code="VERIFICATION_FAILED",
            status_code=500,
            suggestion=suggestion or self.UNTOUCHED,
            details=details
        )


class ClosureInProgressError(ClosureException):
    """Raised when another run already holds the lock for a model period."""

    def __init__(self, lock_key: str):
        super().__init__(
            message=f"Closure already in progress: {lock_key}",
            code="CLOSURE_IN_PROGRESS",
            status_code=409,
            suggestion="Wait for the running closure to finish, then retry",
            details={"lock_key": lock_key}
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def closure_exception_handler(
    request: Request,
    exc: ClosureException
) -> JSONResponse:
    """
    Convert ClosureException to JSON response.

    Returns structured error with:
    - detail: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def validation_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    Converts validation errors to user-friendly messages.
    """
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "code": "VALIDATION_ERROR",
            "errors": str(exc)
        }
    )
