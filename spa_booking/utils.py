"""Shared utilities used across the booking engine."""

import re
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def parse_hhmm(value: str) -> int:
    """Convert an ``HH:MM`` string to minutes since midnight.

    Examples:
        >>> parse_hhmm("09:00")
        540
        >>> parse_hhmm("19:45")
        1185
    """
    match = _HHMM.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def format_minutes(minutes: int) -> str:
    """Convert minutes since midnight back to ``HH:MM``."""
    if not 0 <= minutes <= 24 * 60:
        raise ValueError(f"Minute of day out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def sunday_weekday(day: date) -> int:
    """Day of week with Sunday=0 .. Saturday=6."""
    return (day.weekday() + 1) % 7


def local_datetime(day: date, minute_of_day: int, tz_name: str) -> datetime:
    """Build an aware datetime for a business-local date and minute of day."""
    return datetime.combine(
        day, time(minute_of_day // 60, minute_of_day % 60), tzinfo=ZoneInfo(tz_name)
    )


def business_now(tz_name: str) -> datetime:
    """Current wall-clock time in the business timezone."""
    return datetime.now(ZoneInfo(tz_name))


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("(671) 482-7765")
        '6714827765'
        >>> normalize_phone("+1 671 482 7765")
        '+16714827765'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)
