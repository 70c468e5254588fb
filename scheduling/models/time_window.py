"""
Time Window Model

A half-open interval [start_minute, end_minute) within a single day, anchored
either to a weekday (recurring) or to one calendar date (one-off). Windows
never wrap midnight. Availability and breaks are both built from these.
"""

from dataclasses import dataclass, replace
from datetime import date
from typing import Optional

from shared.utils.constants import MINUTES_PER_DAY
from shared.utils.exceptions import InvalidWindowError
from scheduling.utils.time_utils import (
    day_name,
    day_of_week as weekday_of,
    minutes_to_time,
    parse_local_date,
    time_to_minutes,
)


@dataclass(frozen=True)
class TimeWindow:
    """A recurring or date-specific window in minutes since midnight."""

    start_minute: int
    end_minute: int
    day_of_week: Optional[int] = None
    specific_date: Optional[date] = None

    def __post_init__(self):
        if (self.day_of_week is None) == (self.specific_date is None):
            raise InvalidWindowError("Exactly one of day_of_week or specific_date must be set")
        if self.day_of_week is not None and not 0 <= self.day_of_week <= 6:
            raise InvalidWindowError(f"day_of_week {self.day_of_week} must be between 0 and 6")
        if not (0 <= self.start_minute < MINUTES_PER_DAY and 0 <= self.end_minute < MINUTES_PER_DAY):
            raise InvalidWindowError(
                f"Window {self.start_minute}-{self.end_minute} must lie within a single day"
            )
        if self.start_minute >= self.end_minute:
            raise InvalidWindowError(
                f"Start {minutes_to_time(self.start_minute)} must be before end {minutes_to_time(self.end_minute)}"
            )

    @classmethod
    def from_times(
        cls,
        start_time: str,
        end_time: str,
        day_of_week: Optional[int] = None,
        specific_date: Optional[date] = None,
    ) -> "TimeWindow":
        """Build a window from HH:MM boundaries."""
        return cls(
            start_minute=time_to_minutes(start_time),
            end_minute=time_to_minutes(end_time),
            day_of_week=day_of_week,
            specific_date=specific_date,
        )

    @classmethod
    def from_row(cls, row) -> "TimeWindow":
        """Build a window from a TutorAvailability / TutorBreak row."""
        specific = parse_local_date(row.specific_date) if row.specific_date else None
        return cls.from_times(row.start_time, row.end_time, row.day_of_week, specific)

    @property
    def is_recurring(self) -> bool:
        return self.day_of_week is not None

    @property
    def duration_minutes(self) -> int:
        return self.end_minute - self.start_minute

    @property
    def start_time(self) -> str:
        return minutes_to_time(self.start_minute)

    @property
    def end_time(self) -> str:
        return minutes_to_time(self.end_minute)

    @property
    def weekday(self) -> int:
        """Weekday this window falls on (0=Sunday), for either anchoring."""
        if self.day_of_week is not None:
            return self.day_of_week
        return weekday_of(self.specific_date)

    def same_day(self, other: "TimeWindow") -> bool:
        return self.day_of_week == other.day_of_week and self.specific_date == other.specific_date

    def on_date(self, value: date) -> "TimeWindow":
        """Project a recurring window onto a matching calendar date."""
        if self.specific_date is not None:
            if self.specific_date != value:
                raise InvalidWindowError(f"Window is anchored to {self.specific_date}, not {value}")
            return self
        if weekday_of(value) != self.day_of_week:
            raise InvalidWindowError(
                f"{value.isoformat()} is not a {day_name(self.day_of_week)}"
            )
        return replace(self, day_of_week=None, specific_date=value)

    def with_bounds(self, start_minute: int, end_minute: int) -> "TimeWindow":
        return replace(self, start_minute=start_minute, end_minute=end_minute)

    def label(self) -> str:
        anchor = day_name(self.day_of_week) if self.is_recurring else self.specific_date.isoformat()
        return f"{anchor} {self.start_time}-{self.end_time}"


def contains(outer: TimeWindow, inner: TimeWindow) -> bool:
    """True when inner lies entirely inside outer on the same day or date."""
    if not outer.same_day(inner):
        return False
    return outer.start_minute <= inner.start_minute and inner.end_minute <= outer.end_minute


def overlaps(a: TimeWindow, b: TimeWindow) -> bool:
    """True when the half-open windows share at least one minute."""
    if not a.same_day(b):
        return False
    return a.start_minute < b.end_minute and b.start_minute < a.end_minute


def subtract(window: TimeWindow, cut: TimeWindow) -> list[TimeWindow]:
    """
    Remove cut from window.

    Returns zero, one or two windows: two when cut falls strictly inside,
    one when it touches an edge or only overlaps one side, none when it
    covers the whole window. Zero-length remainders are dropped.
    """
    if not overlaps(window, cut):
        return [window]

    pieces = []
    if window.start_minute < cut.start_minute:
        pieces.append(window.with_bounds(window.start_minute, cut.start_minute))
    if cut.end_minute < window.end_minute:
        pieces.append(window.with_bounds(cut.end_minute, window.end_minute))
    return pieces


def merge_windows(windows: list[TimeWindow]) -> list[TimeWindow]:
    """Union same-day windows, joining overlapping and touching ones. Input must share one day."""
    if not windows:
        return []
    ordered = sorted(windows, key=lambda w: (w.start_minute, w.end_minute))
    merged = [ordered[0]]
    for window in ordered[1:]:
        last = merged[-1]
        if window.start_minute <= last.end_minute:
            if window.end_minute > last.end_minute:
                merged[-1] = last.with_bounds(last.start_minute, window.end_minute)
        else:
            merged.append(window)
    return merged
