"""
Time and date helpers.

Window boundaries travel as HH:MM 24-hour strings and calendar dates as
YYYY-MM-DD strings. Dates are always parsed as local calendar dates, never
through a UTC timestamp, so the weekday of a date cannot shift near midnight.
"""

import re
from datetime import date, datetime, time
from typing import Optional

from shared.utils.constants import DAY_NAMES, MINUTES_PER_DAY, MINUTES_PER_HOUR
from shared.utils.exceptions import InvalidTimeFormatError, InvalidWindowError

_HH_MM_24 = re.compile(r"^(\d{1,2}):(\d{2})$")
_H_MM_AMPM = re.compile(r"^(\d{1,2}):(\d{2})\s*([AaPp][Mm])$")
_HHMM = re.compile(r"^(\d{2})(\d{2})$")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def time_to_minutes(value: str) -> int:
    """Convert a stored HH:MM (or HH:MM:SS) string to minutes since midnight."""
    parts = value.split(":")
    if len(parts) < 2:
        raise InvalidTimeFormatError(value)
    try:
        hours, minutes = int(parts[0]), int(parts[1])
    except ValueError:
        raise InvalidTimeFormatError(value)
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise InvalidTimeFormatError(value)
    return hours * MINUTES_PER_HOUR + minutes


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight to a zero-padded HH:MM string."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise InvalidWindowError(f"{minutes} is outside a single day")
    return f"{minutes // MINUTES_PER_HOUR:02d}:{minutes % MINUTES_PER_HOUR:02d}"


def parse_time_input(text: Optional[str]) -> Optional[int]:
    """
    Parse free-text time input into minutes since midnight.

    Accepts:
        - "HH:MM" 24-hour ("14:15", "9:05")
        - "H:MM AM/PM" ("2:15 PM", "12:00am")
        - "HHMM" with no separator ("1415")

    Returns:
        Minutes since midnight, or None if the input is not a valid time.
    """
    if text is None:
        return None
    value = text.strip()
    if not value:
        return None

    match = _H_MM_AMPM.match(value)
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
        if not (1 <= hours <= 12 and minutes < 60):
            return None
        hours = hours % 12
        if match.group(3).lower() == "pm":
            hours += 12
        return hours * MINUTES_PER_HOUR + minutes

    match = _HH_MM_24.match(value) or _HHMM.match(value)
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
        if hours < 24 and minutes < 60:
            return hours * MINUTES_PER_HOUR + minutes

    return None


def normalize_time_input(text: Optional[str]) -> Optional[str]:
    """Parse free-text time input and return it as HH:MM, or None if unparseable."""
    minutes = parse_time_input(text)
    if minutes is None:
        return None
    return minutes_to_time(minutes)


def require_time_input(text: Optional[str]) -> int:
    """Like parse_time_input but raises InvalidTimeFormatError on bad input."""
    minutes = parse_time_input(text)
    if minutes is None:
        raise InvalidTimeFormatError(text or "")
    return minutes


def format_time_display(value: str) -> str:
    """Format HH:MM for display, e.g. "14:00" -> "2:00 PM"."""
    minutes = time_to_minutes(value)
    hours, mins = divmod(minutes, MINUTES_PER_HOUR)
    period = "PM" if hours >= 12 else "AM"
    display_hours = hours % 12 or 12
    return f"{display_hours}:{mins:02d} {period}"


def parse_local_date(value: str) -> date:
    """
    Parse a YYYY-MM-DD string as a local calendar date.

    Raises:
        InvalidWindowError: if the string is not a real calendar date
    """
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        raise InvalidWindowError(f"Date '{value}' must be formatted YYYY-MM-DD")
    year, month, day = (int(part) for part in value.split("-"))
    try:
        return date(year, month, day)
    except ValueError as e:
        raise InvalidWindowError(f"Date '{value}' is not a calendar date: {e}")


def day_of_week(value: date) -> int:
    """Weekday number with 0=Sunday ... 6=Saturday."""
    return (value.weekday() + 1) % 7


def day_name(day: int) -> str:
    return DAY_NAMES[day]


def combine_local(value: date, time_str: Optional[str]) -> datetime:
    """Build a naive local datetime from a date and an optional HH:MM (midnight when absent)."""
    if not time_str:
        return datetime.combine(value, time(0, 0))
    hours, minutes = divmod(time_to_minutes(time_str), MINUTES_PER_HOUR)
    return datetime.combine(value, time(hours, minutes))
