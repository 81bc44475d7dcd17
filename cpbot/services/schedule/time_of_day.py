"""
Time-of-day codec for daily reminders.

A daily schedule is stored as a canonical second of day: the user's wall-clock
time placed on a fixed reference date in their timezone and projected to UTC.
The value is independent of any calendar date, so a single sorted index over it
answers "who is due between these two times".
"""

import re
from datetime import datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from cpbot.utils.datetime_utils import SECONDS_PER_DAY, to_utc, utc_midnight
from cpbot.utils.errors import InvalidFormatError, InvalidTimezoneError, OutOfRangeError

# Offsets are resolved against this date, both when parsing and when rendering
REFERENCE_DATE = datetime(2017, 1, 1, tzinfo=timezone.utc)

_TIME_PATTERN = re.compile(r"^(\d+)(?::(\d+)(?::(\d+))?)?$")
_FIXED_OFFSET_PATTERN = re.compile(
    r"^(?:UTC|GMT)\s*(?:([+-])\s*(\d{1,2})(?::?(\d{2}))?)?$", re.IGNORECASE
)


def load_timezone(name: str) -> tzinfo:
    """
    Resolve a timezone name.

    Accepts IANA names ("Asia/Jakarta") as well as fixed offsets written
    "UTC", "UTC+7", "GMT-3" or "UTC+05:30".

    Raises:
        InvalidTimezoneError: if the name cannot be resolved
    """
    candidate = (name or "").strip()
    if not candidate:
        raise InvalidTimezoneError(name)

    match = _FIXED_OFFSET_PATTERN.match(candidate)
    if match:
        sign, hours, minutes = match.groups()
        if sign is None:
            return timezone.utc
        offset = timedelta(hours=int(hours), minutes=int(minutes or 0))
        if offset > timedelta(hours=14) or int(minutes or 0) >= 60:
            raise InvalidTimezoneError(name)
        if offset == timedelta(0):
            return timezone.utc
        return timezone(-offset if sign == "-" else offset, candidate.upper())

    try:
        return ZoneInfo(candidate)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        raise InvalidTimezoneError(name)


def parse_time_of_day(text: str, tz: tzinfo) -> int:
    """
    Parse "HH", "HH:MM" or "HH:MM:SS" wall-clock text in ``tz``.

    Returns:
        int: canonical UTC-equivalent second of day in [0, 86400)

    Raises:
        InvalidFormatError: text is not one of the accepted shapes
        OutOfRangeError: a component is outside its range
    """
    match = _TIME_PATTERN.match((text or "").strip())
    if not match:
        raise InvalidFormatError(text)

    hours_text, minutes_text, seconds_text = match.groups()
    hours = int(hours_text)
    if hours > 23:
        raise OutOfRangeError(text, "HH", 23)
    minutes = int(minutes_text) if minutes_text else 0
    if minutes > 59:
        raise OutOfRangeError(text, "MM", 59)
    seconds = int(seconds_text) if seconds_text else 0
    if seconds > 59:
        raise OutOfRangeError(text, "SS", 59)

    local = datetime(
        REFERENCE_DATE.year,
        REFERENCE_DATE.month,
        REFERENCE_DATE.day,
        hours,
        minutes,
        seconds,
        tzinfo=tz,
    )
    return seconds_of_day(local)


def format_time_of_day(second: int, tz: tzinfo) -> str:
    """Render a canonical second in ``tz``; seconds are omitted when zero."""
    _check_second(second)
    local = (REFERENCE_DATE + timedelta(seconds=second)).astimezone(tz)
    if local.second == 0:
        return local.strftime("%H:%M")
    return local.strftime("%H:%M:%S")


def seconds_of_day(instant: datetime) -> int:
    """UTC second of day of an instant (naive datetimes are taken as UTC)."""
    utc = to_utc(instant)
    return utc.hour * 3600 + utc.minute * 60 + utc.second


def next_occurrence(second: int, reference: datetime, inclusive: bool = False) -> datetime:
    """
    Next UTC instant whose time of day is ``second``.

    The result is strictly after ``reference`` and at most 24 hours later, so a
    reference sitting exactly on ``second`` yields the same time tomorrow. With
    ``inclusive=True`` an instant equal to ``reference`` is returned as is.
    """
    _check_second(second)
    reference = to_utc(reference)
    candidate = utc_midnight(reference) + timedelta(seconds=second)
    if candidate < reference or (candidate == reference and not inclusive):
        candidate += timedelta(days=1)
    return candidate


def _check_second(second: int) -> None:
    if not 0 <= second < SECONDS_PER_DAY:
        raise ValueError(f"second of day must be in [0, {SECONDS_PER_DAY}), got {second}")
