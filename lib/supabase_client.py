# =============================================================================
# lib/supabase_client.py - Supabase Client Factory
# =============================================================================
# Builds the service-role Supabase client used by the persistence layer.
#
# The client is created once at the application edge (app/dependencies.py,
# workers/tasks.py) and handed to SupabaseEarningsStore, which is then
# passed into every service. Tests swap in a fake store instead.
#
# Usage:
#   from lib.supabase_client import create_service_client
#   client = create_service_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

from supabase import create_client, Client

from lib.utils import ApplicationError

# Set up logging for this module
logger = logging.getLogger(__name__)

# Postgres unique_violation
UNIQUE_VIOLATION_CODE = "23505"


class SupabaseClientError(ApplicationError):
    """Error during Supabase operations (query, write, delete or client init)."""

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, code=code, suggestion=suggestion, details=details)


def create_service_client(url: str, service_key: str) -> Client:
    """
    Create a Supabase client with the service_role key.

    The service key bypasses Row Level Security (RLS), which archival,
    backup and delete need since they touch every model's rows.

    Raises:
        SupabaseClientError: If client creation fails
    """
    try:
        client = create_client(url, service_key)
        logger.info("Supabase client initialized successfully")
        return client
    except Exception as e:
        raise SupabaseClientError(
            message=f"Failed to create Supabase client: {e}",
            code="CLIENT_INIT_FAILED",
            suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
        )


def is_unique_violation(error: Exception) -> bool:
    """Check whether an insert failed on a unique constraint."""
    code = getattr(error, "code", None)
    return code == UNIQUE_VIOLATION_CODE or UNIQUE_VIOLATION_CODE in str(error)
