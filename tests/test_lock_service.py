# =============================================================================
# tests/test_lock_service.py - Closure Lock Tests
# =============================================================================
# Run with: pytest tests/test_lock_service.py -v
# =============================================================================

from datetime import datetime, timedelta, timezone

import pytest

from app.exceptions import ClosureInProgressError
from core.services.lock_service import ClosureLockService
from lib.supabase_client import SupabaseClientError

PERIOD_KEY = "2025-03-01_1-15_m1"


@pytest.fixture
def locks(store):
    return ClosureLockService(store, ttl_seconds=60)


class TestClosureLocks:
    """Tests for acquire / release / hold."""

    def test_acquire_returns_key(self, locks, store):
        key = locks.acquire("archive", PERIOD_KEY)

        assert key == "archive:2025-03-01_1-15_m1"
        assert key in store.locks

    def test_second_acquire_fails(self, locks):
        locks.acquire("archive", PERIOD_KEY)

        with pytest.raises(ClosureInProgressError) as exc_info:
            locks.acquire("archive", PERIOD_KEY)

        assert exc_info.value.status_code == 409

    def test_different_operations_do_not_collide(self, locks):
        locks.acquire("archive", PERIOD_KEY)

        assert locks.acquire("snapshot", PERIOD_KEY) == "snapshot:2025-03-01_1-15_m1"

    def test_expired_lock_can_be_taken(self, locks, store):
        store.locks["archive:" + PERIOD_KEY] = datetime.now(timezone.utc) - timedelta(seconds=1)

        assert locks.acquire("archive", PERIOD_KEY)

    def test_hold_releases_on_success(self, locks, store):
        with locks.hold("archive", PERIOD_KEY) as key:
            assert key in store.locks

        assert store.locks == {}

    def test_hold_releases_on_error(self, locks, store):
        with pytest.raises(RuntimeError):
            with locks.hold("archive", PERIOD_KEY):
                raise RuntimeError("step failed")

        assert store.locks == {}

    def test_release_failure_does_not_mask_result(self, locks, store):
        store.fail_on["release_lock"] = SupabaseClientError("delete failed")

        with locks.hold("archive", PERIOD_KEY):
            pass

        assert "release_lock" in store.call_log
