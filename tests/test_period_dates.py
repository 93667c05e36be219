# =============================================================================
# tests/test_period_dates.py - Period Calendar Tests
# =============================================================================
# Period ranges, logical period keys and the closure clock.
#
# Run with: pytest tests/test_period_dates.py -v
# =============================================================================

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from lib.period_dates import (
    PeriodType,
    early_freeze_moment,
    get_new_period_after_closure,
    get_period_to_close,
    has_passed_early_freeze,
    is_closure_day,
    is_early_freeze_platform,
    is_early_freeze_relevant_day,
    is_early_freeze_time,
    is_full_closure_time,
    logical_period_key,
    period_range,
    period_start,
    period_type_for,
)

BOGOTA = ZoneInfo("America/Bogota")


class TestPeriodRange:
    """Tests for half-month ranges."""

    def test_first_half(self):
        assert period_range("2025-03-10", "1-15") == (date(2025, 3, 1), date(2025, 3, 15))

    def test_second_half_31_day_month(self):
        assert period_range(date(2025, 3, 20), PeriodType.SECOND_HALF) == (
            date(2025, 3, 16), date(2025, 3, 31)
        )

    def test_february_non_leap_year(self):
        """16-31 in February 2025 ends on the 28th."""
        assert period_range("2025-02-20", "16-31")[1] == date(2025, 2, 28)

    def test_february_leap_year(self):
        """16-31 in February 2024 ends on the 29th."""
        assert period_range("2024-02-20", "16-31")[1] == date(2024, 2, 29)

    def test_invalid_period_type(self):
        with pytest.raises(ValueError):
            period_range("2025-03-01", "1-31")

    def test_period_type_for(self):
        assert period_type_for(date(2025, 3, 15)) is PeriodType.FIRST_HALF
        assert period_type_for(date(2025, 3, 16)) is PeriodType.SECOND_HALF

    def test_period_start(self):
        assert period_start(date(2025, 3, 28)) == date(2025, 3, 16)
        assert period_start(date(2025, 3, 2)) == date(2025, 3, 1)


class TestLogicalPeriodKey:
    """Tests for the deterministic snapshot / backup key."""

    def test_format(self):
        assert logical_period_key(date(2025, 3, 1), "1-15", "m1") == "2025-03-01_1-15_m1"

    def test_any_date_in_period_maps_to_same_key(self):
        assert logical_period_key("2025-03-07", "1-15", "m1") == logical_period_key(
            "2025-03-15", "1-15", "m1"
        )

    def test_models_get_distinct_keys(self):
        assert logical_period_key("2025-03-01", "1-15", "m1") != logical_period_key(
            "2025-03-01", "1-15", "m2"
        )


class TestClosureCalendar:
    """Tests for which period closes when."""

    def test_day_one_closes_previous_second_half(self):
        assert get_period_to_close(date(2025, 3, 1)) == (date(2025, 2, 16), PeriodType.SECOND_HALF)

    def test_day_one_in_january_crosses_year(self):
        assert get_period_to_close(date(2025, 1, 1)) == (date(2024, 12, 16), PeriodType.SECOND_HALF)

    def test_day_sixteen_closes_first_half(self):
        assert get_period_to_close(date(2025, 3, 16)) == (date(2025, 3, 1), PeriodType.FIRST_HALF)

    def test_other_day_returns_current_period(self):
        assert get_period_to_close(date(2025, 3, 20)) == (date(2025, 3, 16), PeriodType.SECOND_HALF)

    def test_new_period_after_closure(self):
        assert get_new_period_after_closure(date(2025, 3, 16)) == (
            date(2025, 3, 16), PeriodType.SECOND_HALF
        )

    @pytest.mark.parametrize("day, expected", [(1, True), (16, True), (15, False), (2, False)])
    def test_is_closure_day(self, day, expected):
        assert is_closure_day(date(2025, 3, day)) is expected

    @pytest.mark.parametrize("today, expected", [
        (date(2025, 3, 15), True),
        (date(2025, 3, 31), True),
        (date(2025, 2, 28), True),
        (date(2024, 2, 28), False),
        (date(2024, 2, 29), True),
        (date(2025, 3, 30), False),
    ])
    def test_is_early_freeze_relevant_day(self, today, expected):
        assert is_early_freeze_relevant_day(today) is expected

    def test_early_freeze_platforms(self):
        assert is_early_freeze_platform("BIG7")
        assert is_early_freeze_platform("superfoon")
        assert not is_early_freeze_platform("chaturbate")


class TestClock:
    """Tests for the Berlin-midnight and full-closure windows."""

    def test_early_freeze_moment_winter(self):
        """Both zones on standard time: Berlin midnight is 18:00 in Bogota."""
        moment = early_freeze_moment(date(2025, 1, 15))

        assert (moment.hour, moment.minute) == (18, 0)
        assert moment.date() == date(2025, 1, 15)

    def test_early_freeze_moment_summer(self):
        """Berlin on summer time: midnight is 17:00 in Bogota."""
        moment = early_freeze_moment(date(2025, 7, 15))

        assert (moment.hour, moment.minute) == (17, 0)

    def test_is_early_freeze_time_within_tolerance(self):
        now = datetime(2025, 1, 15, 18, 3, tzinfo=BOGOTA)

        assert is_early_freeze_time(now, tolerance_minutes=5)

    def test_is_early_freeze_time_outside_tolerance(self):
        now = datetime(2025, 1, 15, 18, 10, tzinfo=BOGOTA)

        assert not is_early_freeze_time(now, tolerance_minutes=5)

    def test_accepts_utc_instants(self):
        """23:00 UTC is 18:00 in Bogota."""
        now = datetime(2025, 1, 15, 23, 0, tzinfo=timezone.utc)

        assert is_early_freeze_time(now)

    def test_has_passed_early_freeze(self):
        assert not has_passed_early_freeze(datetime(2025, 1, 15, 18, 10, tzinfo=BOGOTA), 15)
        assert has_passed_early_freeze(datetime(2025, 1, 15, 18, 15, tzinfo=BOGOTA), 15)

    def test_is_full_closure_time(self):
        assert is_full_closure_time(datetime(2025, 3, 16, 0, 7, tzinfo=BOGOTA))
        assert not is_full_closure_time(datetime(2025, 3, 16, 0, 20, tzinfo=BOGOTA))
        assert not is_full_closure_time(datetime(2025, 3, 16, 1, 0, tzinfo=BOGOTA))
