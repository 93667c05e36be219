# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# This package contains the Celery configuration and the scheduled period
# closure tasks.
#
# Components:
# - celery_app.py: Celery application configuration
# - tasks.py: Task definitions (early freeze, DX Live freeze, closure)
# - config.py: Worker settings and beat schedule
#
# Usage:
#   # Start worker (closure queue included)
#   celery -A workers.celery_app worker -Q default,closure --loglevel=info
#
#   # Start the scheduler
#   celery -A workers.celery_app beat --loglevel=info
#
#   # Submit task (from API / shell)
#   from workers.tasks import archive_model_period
#   result = archive_model_period.delay(model_id, "2025-03-01", "1-15")
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]
