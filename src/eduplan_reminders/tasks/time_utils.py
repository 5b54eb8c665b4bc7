# src/eduplan_reminders/tasks/time_utils.py

from __future__ import annotations

"""
Wall-clock helpers for calendar tasks.

Tasks carry a calendar date ("YYYY-MM-DD") and a 12-hour clock string ("h:mm AM/PM").
Everything here is strict: a string we cannot read is an error, never a guess.
"""

import re
from datetime import date, datetime, tzinfo

_TIME_12H = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])\s*$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class TimeFormatError(ValueError):
    """Raised for date/time strings that cannot be turned into an instant."""


def parse_date(raw: str) -> date:
    if not isinstance(raw, str) or not _ISO_DATE.match(raw.strip()):
        raise TimeFormatError(f"Invalid date {raw!r}; expected YYYY-MM-DD")
    try:
        return date.fromisoformat(raw.strip())
    except ValueError as e:
        raise TimeFormatError(f"Invalid date {raw!r}: {e}") from e


def parse_clock_12h(time12h: str) -> tuple[int, int]:
    """
    Parse "h:mm AM/PM" into (hour, minute) on a 24-hour clock.

    12 AM -> 0, 12 PM -> 12, 1-11 PM -> 13-23.
    """
    if not isinstance(time12h, str):
        raise TimeFormatError(f"Invalid time {time12h!r}; expected 'h:mm AM/PM'")

    m = _TIME_12H.match(time12h)
    if not m:
        raise TimeFormatError(f"Invalid time {time12h!r}; expected 'h:mm AM/PM'")

    hour = int(m.group(1))
    minute = int(m.group(2))
    marker = m.group(3).upper()

    if not 1 <= hour <= 12:
        raise TimeFormatError(f"Invalid hour in {time12h!r}")
    if not 0 <= minute <= 59:
        raise TimeFormatError(f"Invalid minute in {time12h!r}")

    if hour == 12:
        hour = 0
    if marker == "PM":
        hour += 12
    return hour, minute


def parse_wall_clock_time(date_str: str, time12h: str, tz: tzinfo | None = None) -> datetime:
    """
    Combine an ISO date and a 12-hour clock string into an aware datetime.

    With tz=None the wall-clock time is interpreted in the system local zone.
    """
    day = parse_date(date_str)
    hour, minute = parse_clock_12h(time12h)
    naive = datetime(day.year, day.month, day.day, hour, minute)
    if tz is None:
        return naive.astimezone()
    return naive.replace(tzinfo=tz)


def minutes_since_midnight(time12h: str | None) -> int:
    """Sort key for tasks sharing a date. Empty time sorts first."""
    if not time12h:
        return 0
    hour, minute = parse_clock_12h(time12h)
    return hour * 60 + minute


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}{'' if n == 1 else 's'}"


def format_relative_past(instant: datetime, now: datetime) -> str:
    """
    "5 minutes ago" / "1 hour ago" / "3 days ago".

    Buckets on the floor of elapsed minutes: <60 minutes, <1440 hours, else days.
    """
    diff_minutes = int((now - instant).total_seconds() // 60)

    if diff_minutes < 60:
        return f"{_plural(diff_minutes, 'minute')} ago"
    if diff_minutes < 1440:
        return f"{_plural(diff_minutes // 60, 'hour')} ago"
    return f"{_plural(diff_minutes // 1440, 'day')} ago"
