#!/usr/bin/env python3
# =============================================================================
# scripts/start_worker.py - Celery Worker Entry Point
# =============================================================================
# Starts a Celery worker that consumes the default and closure queues, with
# the embedded beat scheduler that fires the freeze and closure jobs.
#
# Usage:
#   # Worker + beat (single-node deployment)
#   python scripts/start_worker.py
#
#   # Worker without beat (when beat runs elsewhere)
#   python scripts/start_worker.py --no-beat
#
#   # Or use Celery CLI directly
#   celery -A workers.celery_app worker -B -Q default,closure --loglevel=info
#
# Prerequisites:
#   - Redis must be running
#   - Environment variables must be set (.env file)
# =============================================================================

import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from workers.celery_app import celery_app  # noqa: E402


def main():
    """Start the Celery worker."""
    with_beat = "--no-beat" not in sys.argv[1:]

    print("=" * 60)
    print("Period Closure Worker")
    print("=" * 60)
    print()
    print(f"Timezone: {celery_app.conf.timezone}")
    print(f"Beat: {'embedded' if with_beat else 'disabled'}")
    print("Press Ctrl+C to stop")
    print()

    argv = [
        "worker",
        "--loglevel=info",
        "--queues=default,closure",
        # Closure runs must not overlap on one node
        "--concurrency=1",
    ]
    if with_beat:
        argv.append("--beat")

    celery_app.worker_main(argv)


if __name__ == "__main__":
    main()
