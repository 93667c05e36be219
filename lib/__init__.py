# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - period_dates.py: Half-month accounting periods and closure clock rules
# - supabase_client.py: Service-role Supabase client factory + error type
# - utils.py: Shared utilities (error base class, platform key normalization)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.period_dates import (
    EARLY_FREEZE_PLATFORMS,
    PeriodType,
    get_period_to_close,
    logical_period_key,
    period_range,
    period_start,
)
from lib.supabase_client import SupabaseClientError, create_service_client
from lib.utils import ApplicationError, normalize_platform_key

__all__ = [
    # Periods
    "EARLY_FREEZE_PLATFORMS",
    "PeriodType",
    "get_period_to_close",
    "logical_period_key",
    "period_range",
    "period_start",
    # Supabase
    "SupabaseClientError",
    "create_service_client",
    # Utils
    "ApplicationError",
    "normalize_platform_key",
]
