# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - freeze.py: Early-freeze marks and effective freeze status
# - closure.py: Archive, snapshot, closure status and scheduled runs
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import freeze
from . import closure

__all__ = [
    "health",
    "freeze",
    "closure",
]
