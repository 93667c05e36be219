# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the Period Closure API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.exceptions import (
    ClosureException,
    closure_exception_handler,
    validation_exception_handler,
)
from app.routers import health, freeze, closure
from lib.supabase_client import SupabaseClientError

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup and shutdown.
    """
    logger.info(f"Starting Period Closure API in {settings.ENVIRONMENT} mode")
    logger.info(f"Closing periods in {settings.LOCAL_TIMEZONE}")

    yield

    logger.info("Shutting down Period Closure API")


# Create FastAPI application
app = FastAPI(
    title="Period Closure API",
    description="""
## Bi-weekly Earnings Closure

Closes each half-month period of model earnings: freezes platforms,
archives computed values into history, backs up and only then clears the
live calculator values.

### Closure Timeline

| When (local time) | Step |
|-------------------|------|
| Last day, Berlin midnight | Early freeze of EUR/remote-cycle platforms |
| Last day, 10:00 | DX Live freeze |
| Day 1 / 16, 00:00 | Full closure: snapshot, archive, verify, backup, delete |

### Quick Start

```bash
# Frozen platforms for the calculator UI
curl http://localhost:8000/api/v1/freeze/{model_id}/status

# Archive one model period by hand
curl -X POST http://localhost:8000/api/v1/closure/archive \\
  -H "Content-Type: application/json" \\
  -d '{"model_id": "...", "period_date": "2025-03-01", "period_type": "1-15"}'
```
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Freeze",
            "description": "Early-freeze marks and effective freeze status",
        },
        {
            "name": "Closure",
            "description": "Archive, snapshots, closure state and scheduled runs",
        },
        {
            "name": "Health",
            "description": "API health and readiness checks",
        },
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# CORS middleware - allows cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(ClosureException)
async def handle_closure_exception(request: Request, exc: ClosureException):
    """Handle custom closure exceptions."""
    return await closure_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    """Handle request body / query validation errors."""
    return await validation_exception_handler(request, exc)


@app.exception_handler(SupabaseClientError)
async def handle_storage_error(request: Request, exc: SupabaseClientError):
    """Storage failures surface as {success: false, error}."""
    logger.error(f"Storage error: {exc}")
    return JSONResponse(
        status_code=502,
        content={"success": False, "error": exc.message, "code": exc.code},
    )


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

# Health check endpoints
app.include_router(
    health.router,
    prefix="/api/v1",
    tags=["Health"]
)

# Early-freeze endpoints
app.include_router(
    freeze.router,
    prefix="/api/v1/freeze",
    tags=["Freeze"]
)

# Closure endpoints
app.include_router(
    closure.router,
    prefix="/api/v1/closure",
    tags=["Closure"]
)


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "Period Closure API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
