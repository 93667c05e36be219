# =============================================================================
# lib/period_dates.py - Accounting Period Calendar
# =============================================================================
# Half-month accounting periods and the clock rules around their closure.
#
# Periods:
#   "1-15"  -> YYYY-MM-01 .. YYYY-MM-15
#   "16-31" -> YYYY-MM-16 .. YYYY-MM-<last day of month>
#
# Closure timeline (all wall-clock times in the agency's local timezone,
# America/Bogota by default):
#   - Last day of a period, at midnight Europe/Berlin (~17:00/18:00 local):
#     early freeze of EARLY_FREEZE_PLATFORMS.
#   - Last day of a period, 10:00 local: DX Live freeze.
#   - Day 1 / day 16, 00:00-00:15 local: full closure of the period that
#     just ended.
#
# Every function takes the reference moment explicitly (`now` / `today`)
# so schedulers and tests can pin the clock.
# =============================================================================

from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from zoneinfo import ZoneInfo

DEFAULT_LOCAL_TIMEZONE = "America/Bogota"
DEFAULT_EARLY_FREEZE_TIMEZONE = "Europe/Berlin"

# Platforms whose payout cycle closes at midnight Central Europe, ahead of
# the local full closure.
EARLY_FREEZE_PLATFORMS: tuple[str, ...] = (
    "superfoon",
    "livecreator",
    "mdh",
    "777",
    "xmodels",
    "big7",
    "mondo",
    "vx",
    "babestation",
    "dirtyfans",
)

DXLIVE_PLATFORM_ID = "dxlive"


class PeriodType(str, Enum):
    """The two half-month accounting windows."""
    FIRST_HALF = "1-15"
    SECOND_HALF = "16-31"


# =============================================================================
# Period Ranges
# =============================================================================

def to_date(value: date | datetime | str) -> date:
    """Coerce an ISO string / datetime / date into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def last_day_of_month(year: int, month: int) -> int:
    """Number of days in the month (28-31)."""
    return calendar.monthrange(year, month)[1]


def period_type_for(day: date | str) -> PeriodType:
    """Which half of the month a date falls in."""
    return PeriodType.FIRST_HALF if to_date(day).day <= 15 else PeriodType.SECOND_HALF


def period_range(
    period_date: date | str,
    period_type: PeriodType | str,
) -> tuple[date, date]:
    """
    Concrete inclusive date range for a period.

    Only the year and month of `period_date` matter; the period type picks
    the half.

    Example:
        period_range("2024-02-20", "16-31")  # (2024-02-16, 2024-02-29)
        period_range("2025-02-03", "16-31")  # (2025-02-16, 2025-02-28)
    """
    ref = to_date(period_date)
    ptype = PeriodType(period_type)

    if ptype is PeriodType.FIRST_HALF:
        return date(ref.year, ref.month, 1), date(ref.year, ref.month, 15)

    last = last_day_of_month(ref.year, ref.month)
    return date(ref.year, ref.month, 16), date(ref.year, ref.month, last)


def period_start(
    period_date: date | str,
    period_type: PeriodType | str | None = None,
) -> date:
    """First day of the period containing `period_date`."""
    ptype = PeriodType(period_type) if period_type else period_type_for(period_date)
    return period_range(period_date, ptype)[0]


def logical_period_key(
    period_date: date | str,
    period_type: PeriodType | str,
    model_id: str,
) -> str:
    """
    Deterministic key naming one model's closure of one period.

    Format: "<period start ISO>_<period type>_<model id>", e.g.
    "2025-03-01_1-15_6f1c...". Any reference date inside the period maps to
    the same key, so repeated backups/snapshots of a logical period upsert
    onto the same row.
    """
    ptype = PeriodType(period_type)
    start = period_start(period_date, ptype)
    return f"{start.isoformat()}_{ptype.value}_{model_id}"


# =============================================================================
# Clock Helpers
# =============================================================================

def local_now(
    now: datetime | None = None,
    tz_name: str = DEFAULT_LOCAL_TIMEZONE,
) -> datetime:
    """Current (or given) instant expressed in the local timezone."""
    instant = now or datetime.now(timezone.utc)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(ZoneInfo(tz_name))


def local_today(
    now: datetime | None = None,
    tz_name: str = DEFAULT_LOCAL_TIMEZONE,
) -> date:
    """Local calendar date for the given instant."""
    return local_now(now, tz_name).date()


def early_freeze_moment(
    day: date,
    tz_name: str = DEFAULT_LOCAL_TIMEZONE,
    freeze_tz_name: str = DEFAULT_EARLY_FREEZE_TIMEZONE,
) -> datetime:
    """
    Local instant at which the Central European day after `day` begins.

    This is midnight in Berlin, which lands in the local afternoon of `day`
    (18:00 Bogota in winter, 17:00 in European summer time).
    """
    berlin_midnight = datetime.combine(
        day + timedelta(days=1), time(0, 0), tzinfo=ZoneInfo(freeze_tz_name)
    )
    return berlin_midnight.astimezone(ZoneInfo(tz_name))


def is_early_freeze_time(
    now: datetime | None = None,
    tolerance_minutes: int = 5,
    tz_name: str = DEFAULT_LOCAL_TIMEZONE,
    freeze_tz_name: str = DEFAULT_EARLY_FREEZE_TIMEZONE,
) -> bool:
    """True within +/- tolerance of today's Berlin-midnight moment."""
    current = local_now(now, tz_name)
    target = early_freeze_moment(current.date(), tz_name, freeze_tz_name)
    return abs(current - target) <= timedelta(minutes=tolerance_minutes)


def has_passed_early_freeze(
    now: datetime | None = None,
    margin_minutes: int = 15,
    tz_name: str = DEFAULT_LOCAL_TIMEZONE,
    freeze_tz_name: str = DEFAULT_EARLY_FREEZE_TIMEZONE,
) -> bool:
    """True once today's Berlin-midnight moment plus a margin is behind us."""
    current = local_now(now, tz_name)
    target = early_freeze_moment(current.date(), tz_name, freeze_tz_name)
    return current >= target + timedelta(minutes=margin_minutes)


def is_full_closure_time(
    now: datetime | None = None,
    window_minutes: int = 15,
    tz_name: str = DEFAULT_LOCAL_TIMEZONE,
) -> bool:
    """
    True between 00:00 and 00:<window> local.

    The window absorbs scheduler delays.
    """
    current = local_now(now, tz_name)
    return current.hour == 0 and current.minute <= window_minutes


def is_closure_day(today: date) -> bool:
    """Day 1 and day 16 close the period that just ended."""
    return today.day in (1, 16)


def is_early_freeze_relevant_day(today: date) -> bool:
    """Last day of a period: the 15th or the last day of the month."""
    return today.day == 15 or today.day == last_day_of_month(today.year, today.month)


def get_current_period_type(today: date) -> PeriodType:
    return period_type_for(today)


def get_period_to_close(today: date) -> tuple[date, PeriodType]:
    """
    Period that must be closed on a closure day.

    Day 1 closes the 16-31 period of the previous month; day 16 closes the
    1-15 period of the current month. Any other day falls back to the
    period containing `today`.
    """
    if today.day == 1:
        previous = today - timedelta(days=1)
        return date(previous.year, previous.month, 16), PeriodType.SECOND_HALF
    if today.day == 16:
        return date(today.year, today.month, 1), PeriodType.FIRST_HALF

    ptype = period_type_for(today)
    return period_start(today, ptype), ptype


def get_new_period_after_closure(today: date) -> tuple[date, PeriodType]:
    """Period that starts once the closure of `today` finishes."""
    ptype = period_type_for(today)
    return period_start(today, ptype), ptype


def is_early_freeze_platform(platform_id: str) -> bool:
    return platform_id.lower() in EARLY_FREEZE_PLATFORMS
