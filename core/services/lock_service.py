# =============================================================================
# core/services/lock_service.py - Closure Locks
# =============================================================================
# Unique in-flight marker for one operation on one logical period, so two
# concurrent closures of the same (model, period) cannot both pass
# verification and delete.
#
# Usage:
#   locks = ClosureLockService(store)
#   with locks.hold("archive", period_key):
#       ...  # raises ClosureInProgressError if already held
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from app.exceptions import ClosureInProgressError
from core.store.base import EarningsStore

logger = logging.getLogger(__name__)

# Longest a crashed run may keep a period blocked
DEFAULT_LOCK_TTL_SECONDS = 30 * 60


class ClosureLockService:
    """Acquire / release rows of period_closure_locks."""

    def __init__(self, store: EarningsStore, ttl_seconds: int = DEFAULT_LOCK_TTL_SECONDS):
        self.store = store
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def lock_key(operation: str, period_key: str) -> str:
        """e.g. "archive:2025-03-01_1-15_<model id>"."""
        return f"{operation}:{period_key}"

    def acquire(self, operation: str, period_key: str) -> str:
        """
        Take the lock or fail.

        Returns:
            The lock key to release later

        Raises:
            ClosureInProgressError: If another run holds it
        """
        key = self.lock_key(operation, period_key)
        if not self.store.try_acquire_lock(key, operation, self.ttl_seconds):
            raise ClosureInProgressError(key)

        logger.debug(f"Acquired closure lock {key}")
        return key

    def release(self, key: str) -> None:
        self.store.release_lock(key)
        logger.debug(f"Released closure lock {key}")

    @contextmanager
    def hold(self, operation: str, period_key: str) -> Iterator[str]:
        key = self.acquire(operation, period_key)
        try:
            yield key
        finally:
            try:
                self.release(key)
            except Exception as e:
                # Lock expires after ttl_seconds; the run's own outcome wins
                logger.error(f"Failed to release closure lock {key}: {e}")
