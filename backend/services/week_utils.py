"""Calendar and week arithmetic in South Africa Standard Time.

All week boundaries are computed in a fixed UTC+2 zone (SAST has no daylight
saving), Monday being day 1. Functions that depend on "now" take a ``clock``
callable so callers and tests can pin the reference time.
"""

from collections.abc import Callable
from datetime import date, datetime, time, timedelta, timezone

from schemas.metrics import DateRange, WeekRange

SAST = timezone(timedelta(hours=2), "SAST")

HOURS_PER_WEEK = 168
DAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

Clock = Callable[[], datetime]

DATE_RANGE_PRESETS = ("1w", "4w", "12w", "ytd", "all")
DEFAULT_DATE_RANGE = "4w"
_PRESET_DAYS = {"1w": 7, "4w": 28, "12w": 84}
ALL_TIME_START = "2020-01-01"


def system_clock() -> datetime:
    return datetime.now(timezone.utc)


def get_clock() -> Clock:
    """FastAPI dependency; tests override it with a frozen clock."""
    return system_clock


def to_sast(value: datetime) -> datetime:
    """Convert to SAST; naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(SAST)


def parse_date(value: str) -> date:
    return date.fromisoformat(value[:10])


def format_date(value: date) -> str:
    return value.isoformat()


def shift_date(value: str, days: int) -> str:
    return format_date(parse_date(value) + timedelta(days=days))


def sast_date(value: datetime) -> str:
    """Calendar day (YYYY-MM-DD) of a timestamp in SAST."""
    return format_date(to_sast(value).date())


def sast_today(clock: Clock = system_clock) -> date:
    return to_sast(clock()).date()


def week_start_datetime(week_start: str) -> datetime:
    """Monday 00:00 SAST of the week starting on ``week_start``."""
    return datetime.combine(parse_date(week_start), time.min, tzinfo=SAST)


def _monday_of(day: date) -> date:
    return day - timedelta(days=day.isoweekday() - 1)


def _week_of(monday: date) -> WeekRange:
    return WeekRange(
        week_start=format_date(monday),
        week_end=format_date(monday + timedelta(days=6)),
    )


def current_week_range(clock: Clock = system_clock) -> WeekRange:
    """Monday..Sunday of the (possibly partial) week containing now."""
    return _week_of(_monday_of(sast_today(clock)))


def last_completed_week(clock: Clock = system_clock) -> WeekRange:
    """The most recent Monday..Sunday week that has fully elapsed."""
    today = sast_today(clock)
    last_sunday = today - timedelta(days=today.isoweekday() % 7 or 7)
    return _week_of(last_sunday - timedelta(days=6))


def previous_week(week_start: str) -> WeekRange:
    return _week_of(parse_date(week_start) - timedelta(days=7))


def week_range_for(week_start: str) -> WeekRange:
    return _week_of(parse_date(week_start))


def hours_into_week(clock: Clock = system_clock) -> float:
    """Hours since this week's Monday 00:00 SAST, to one decimal, always below 168."""
    now = to_sast(clock())
    start = week_start_datetime(current_week_range(clock).week_start)
    # rounding would report 168.0 in the last minutes of Sunday
    return min(round((now - start).total_seconds() / 3600, 1), 167.9)


def day_number(value: str) -> int:
    """1 (Monday) through 7 (Sunday) for a YYYY-MM-DD date."""
    return parse_date(value).isoweekday()


def current_day_number(clock: Clock = system_clock) -> int:
    return sast_today(clock).isoweekday()


def week_start_for(value: str | datetime) -> str:
    """Monday of the week containing ``value``, bucketed in SAST.

    Bare dates are read as UTC midnight, so they stay on the same day after
    the +2h shift.
    """
    if isinstance(value, str):
        if len(value) == 10:
            value = datetime.combine(parse_date(value), time.min, tzinfo=timezone.utc)
        else:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return format_date(_monday_of(to_sast(value).date()))


def is_partial_week(week_start: str, week_end: str, clock: Clock = system_clock) -> bool:
    """True while today (SAST) lies inside [week_start, week_end]."""
    today = format_date(sast_today(clock))
    return week_start <= today <= week_end


def partial_week_days(week_start: str, clock: Clock = system_clock) -> int:
    """Number of days of ``week_start``'s week that have begun, at most 7."""
    elapsed = to_sast(clock()) - week_start_datetime(week_start)
    return min(elapsed // timedelta(days=1) + 1, 7)


def format_week_label(week_start: str) -> str:
    """"2025-01-06" -> "6 Jan 2025"."""
    d = parse_date(week_start)
    return f"{d.day} {d.strftime('%b')} {d.year}"


def short_week_label(week_start: str) -> str:
    """"2025-01-06" -> "Jan 6"."""
    d = parse_date(week_start)
    return f"{d.strftime('%b')} {d.day}"


def weeks_between(start: str, end: str) -> list[str]:
    """Monday of every week from the week containing ``start`` through ``end``."""
    current = parse_date(week_start_for(start))
    last = parse_date(end)
    weeks = []
    while current <= last:
        weeks.append(format_date(current))
        current += timedelta(days=7)
    return weeks


def resolve_date_range(preset: str | None, clock: Clock = system_clock) -> DateRange:
    """Turn a range preset (1w, 4w, 12w, ytd, all) into concrete dates.

    Raises ValueError for an unknown preset.
    """
    preset = preset or DEFAULT_DATE_RANGE
    if preset not in DATE_RANGE_PRESETS:
        raise ValueError(f"Unknown date range preset: {preset}")

    today = sast_today(clock)
    if preset in _PRESET_DAYS:
        start = format_date(today - timedelta(days=_PRESET_DAYS[preset]))
    elif preset == "ytd":
        start = f"{today.year}-01-01"
    else:
        start = ALL_TIME_START
    return DateRange(start=start, end=format_date(today))


def previous_period(current: DateRange) -> DateRange:
    """Range of equal length ending the day before ``current`` starts."""
    start = parse_date(current.start)
    duration = parse_date(current.end) - start
    prev_end = start - timedelta(days=1)
    return DateRange(start=format_date(prev_end - duration), end=format_date(prev_end))
