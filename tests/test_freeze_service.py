# =============================================================================
# tests/test_freeze_service.py - Early-Freeze Manager Tests
# =============================================================================
# Run with: pytest tests/test_freeze_service.py -v
# =============================================================================

from datetime import date, datetime
from zoneinfo import ZoneInfo

import pytest

from app.exceptions import ClosureException
from core.models.closure import ClosureStatus, ClosureStatusRecord
from core.services.freeze_service import FreezeService
from lib.period_dates import EARLY_FREEZE_PLATFORMS, PeriodType
from lib.supabase_client import SupabaseClientError

BOGOTA = ZoneInfo("America/Bogota")


@pytest.fixture
def service(store):
    return FreezeService(store)


class TestFreezeMarks:
    """Tests for freeze / is-frozen / list."""

    def test_freeze_and_read_back(self, service, model_id):
        result = service.freeze_platforms_for_model(date(2025, 3, 15), model_id, ["big7", "superfoon"])

        assert result.success
        assert set(service.get_frozen_platforms_for_model(date(2025, 3, 15), model_id)) == {
            "big7", "superfoon"
        }

    def test_freeze_is_idempotent(self, service, store, model_id):
        """Freezing twice never errors and never duplicates."""
        service.freeze_platforms_for_model(date(2025, 3, 15), model_id, ["big7"])
        result = service.freeze_platforms_for_model(date(2025, 3, 15), model_id, ["big7", "big7"])

        assert result.success
        assert len(store.frozen) == 1

    def test_marks_keyed_by_period_start(self, service, store, model_id):
        """Any date in the period addresses the same marks."""
        service.freeze_platforms_for_model(date(2025, 3, 15), model_id, ["big7"])

        assert service.is_platform_frozen(date(2025, 3, 2), model_id, "big7")
        assert (date(2025, 3, 1), model_id, "big7") in store.frozen

    def test_other_period_not_frozen(self, service, model_id):
        service.freeze_platforms_for_model(date(2025, 3, 15), model_id, ["big7"])

        assert not service.is_platform_frozen(date(2025, 3, 16), model_id, "big7")

    def test_other_model_not_frozen(self, service, model_id):
        service.freeze_platforms_for_model(date(2025, 3, 15), model_id, ["big7"])

        assert not service.is_platform_frozen(date(2025, 3, 15), "someone-else", "big7")

    def test_empty_platform_list_is_noop(self, service, store, model_id):
        result = service.freeze_platforms_for_model(date(2025, 3, 15), model_id, [])

        assert result.success
        assert "upsert_frozen_marks" not in store.call_log

    def test_storage_error_reported(self, service, store, model_id):
        store.fail_on["upsert_frozen_marks"] = SupabaseClientError("insert failed")

        result = service.freeze_platforms_for_model(date(2025, 3, 15), model_id, ["big7"])

        assert not result.success
        assert "insert failed" in result.error

    def test_read_errors_propagate(self, service, store, model_id):
        store.fail_on["frozen_mark_exists"] = SupabaseClientError("read failed")

        with pytest.raises(SupabaseClientError):
            service.is_platform_frozen(date(2025, 3, 15), model_id, "big7")


class TestFreezeStatus:
    """Tests for the effective status shown to the calculator UI."""

    def test_before_berlin_midnight_only_stored_marks(self, service, model_id):
        service.freeze_platforms_for_model(date(2025, 1, 15), model_id, ["dxlive"])
        now = datetime(2025, 1, 15, 12, 0, tzinfo=BOGOTA)

        status = service.get_platform_freeze_status(model_id, now=now)

        assert status.frozen_platforms == ["dxlive"]
        assert status.frozen_in_store == 1
        assert not status.auto_detected

    def test_after_berlin_midnight_on_last_day(self, service, model_id):
        """18:15 Bogota on Jan 15 is past Berlin midnight plus the margin."""
        now = datetime(2025, 1, 15, 18, 20, tzinfo=BOGOTA)

        status = service.get_platform_freeze_status(model_id, now=now)

        assert status.auto_detected
        assert set(status.frozen_platforms) == set(EARLY_FREEZE_PLATFORMS)
        assert status.frozen_in_store == 0
        assert status.is_frozen

    def test_within_margin_not_yet_frozen(self, service, model_id):
        now = datetime(2025, 1, 15, 18, 10, tzinfo=BOGOTA)

        assert not service.get_platform_freeze_status(model_id, now=now).auto_detected

    def test_not_last_day(self, service, model_id):
        now = datetime(2025, 1, 14, 20, 0, tzinfo=BOGOTA)

        assert not service.get_platform_freeze_status(model_id, now=now).auto_detected

    def test_ended_period_is_frozen(self, service, model_id):
        """Looking at an already ended period: early platforms are frozen."""
        now = datetime(2025, 1, 16, 9, 0, tzinfo=BOGOTA)

        status = service.get_platform_freeze_status(model_id, period_date=date(2025, 1, 3), now=now)

        assert status.auto_detected
        assert status.period_date == date(2025, 1, 1)

    def test_merges_without_duplicates(self, service, model_id):
        service.freeze_platforms_for_model(date(2025, 1, 15), model_id, ["big7", "dxlive"])
        now = datetime(2025, 1, 15, 19, 0, tzinfo=BOGOTA)

        status = service.get_platform_freeze_status(model_id, now=now)

        assert status.frozen_platforms.count("big7") == 1
        assert "dxlive" in status.frozen_platforms


class TestCleanup:
    """Tests for frozen-mark cleanup."""

    def test_removes_marks_of_other_periods(self, service, store, model_id):
        service.freeze_platforms_for_model(date(2025, 3, 15), model_id, ["big7"])
        service.freeze_platforms_for_model(date(2025, 3, 20), model_id, ["mondo"])

        deleted = service.cleanup_frozen_platforms(today=date(2025, 3, 20))

        assert deleted == 1
        assert service.get_frozen_platforms_for_model(date(2025, 3, 20), model_id) == ["mondo"]

    def test_removes_marks_of_completed_periods(self, service, store, model_id):
        service.freeze_platforms_for_model(date(2025, 3, 20), model_id, ["mondo"])
        store.statuses[date(2025, 3, 16)] = ClosureStatusRecord(
            period_date=date(2025, 3, 16),
            period_type=PeriodType.SECOND_HALF,
            status=ClosureStatus.COMPLETED,
        )

        deleted = service.cleanup_frozen_platforms(today=date(2025, 3, 20))

        assert deleted == 1
        assert store.frozen == {}

    def test_scoped_to_model(self, service, store, model_id):
        service.freeze_platforms_for_model(date(2025, 3, 1), model_id, ["big7"])
        service.freeze_platforms_for_model(date(2025, 3, 1), "other", ["big7"])

        service.cleanup_frozen_platforms(model_id=model_id, today=date(2025, 3, 20))

        assert list(store.frozen) == [(date(2025, 3, 1), "other", "big7")]

    def test_force_removes_everything_for_model(self, service, store, model_id):
        service.freeze_platforms_for_model(date(2025, 3, 20), model_id, ["big7"])
        service.freeze_platforms_for_model(date(2025, 3, 20), "other", ["big7"])

        deleted = service.cleanup_frozen_platforms(model_id=model_id, force=True)

        assert deleted == 1
        assert list(store.frozen) == [(date(2025, 3, 16), "other", "big7")]

    def test_force_requires_model(self, service):
        with pytest.raises(ClosureException) as exc_info:
            service.cleanup_frozen_platforms(force=True)

        assert exc_info.value.status_code == 400
