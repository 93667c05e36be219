# =============================================================================
# workers/config.py - Celery Worker Configuration
# =============================================================================
# Settings specific to Celery workers, including the beat schedule that
# drives the period closure.
#
# Beat runs in LOCAL_TIMEZONE; every task re-checks the clock itself, so a
# late or duplicated beat tick is harmless.
# =============================================================================

from celery.schedules import crontab

from app.config import settings


class CeleryConfig:
    """
    Celery configuration settings.

    These are applied to the Celery app via app.config_from_object().
    """

    # -------------------------------------------------------------------------
    # Broker Settings (Redis)
    # -------------------------------------------------------------------------

    # Redis URL for message broker
    broker_url = settings.REDIS_URL

    # Redis URL for result backend (store task results)
    result_backend = settings.REDIS_URL

    # -------------------------------------------------------------------------
    # Task Settings
    # -------------------------------------------------------------------------

    # Acknowledge tasks after they complete (not before)
    # This prevents task loss if worker crashes mid-task
    task_acks_late = True

    # Only prefetch one task at a time
    worker_prefetch_multiplier = 1

    # Task results expire after 1 day
    result_expires = 86400

    # Default task timeout (5 minutes); close_period sets its own
    task_time_limit = 300

    # Soft timeout (4 minutes) - gives task time to clean up
    task_soft_time_limit = 240

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    # Use JSON for task serialization (safer than pickle)
    task_serializer = "json"
    result_serializer = "json"
    accept_content = ["json"]

    # -------------------------------------------------------------------------
    # Task Routing
    # -------------------------------------------------------------------------

    task_queues = {
        "default": {
            "exchange": "default",
            "routing_key": "default",
        },
        "closure": {
            "exchange": "closure",
            "routing_key": "closure",
        },
    }

    # Closure work runs on its own queue
    task_routes = {
        "workers.tasks.close_period": {"queue": "closure"},
        "workers.tasks.archive_model_period": {"queue": "closure"},
    }

    task_default_queue = "default"

    # -------------------------------------------------------------------------
    # Beat Schedule
    # -------------------------------------------------------------------------

    beat_schedule = {
        # Berlin midnight lands at 17:00/18:00 Bogota on the last day of a period
        "early-freeze": {
            "task": "workers.tasks.early_freeze",
            "schedule": crontab(minute="*/5", hour="16-18", day_of_month="15,28-31"),
        },
        "dxlive-freeze": {
            "task": "workers.tasks.dxlive_freeze",
            "schedule": crontab(
                minute=0,
                hour=settings.DXLIVE_FREEZE_HOUR,
                day_of_month="15,28-31",
            ),
        },
        "close-period": {
            "task": "workers.tasks.close_period",
            "schedule": crontab(minute="0,5,10", hour=0, day_of_month="1,16"),
        },
        "cleanup-frozen-platforms": {
            "task": "workers.tasks.cleanup_frozen_platforms",
            "schedule": crontab(minute=30, hour=2),
        },
    }

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    # Send task events for monitoring (Flower, etc.)
    worker_send_task_events = True
    task_send_sent_event = True

    # -------------------------------------------------------------------------
    # Timezone
    # -------------------------------------------------------------------------

    timezone = settings.LOCAL_TIMEZONE
    enable_utc = True
