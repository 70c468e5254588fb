"""
Availability Set

Recurring and date-specific windows during which a tutor can be booked.
Several windows per day are allowed and read as a union. Changing or
removing a window is refused while a break depends on it for containment.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session as DBSession

from shared.models.entities import TutorAvailability
from shared.utils.exceptions import (
    AvailabilityHasBreaksError,
    NotFoundError,
    PermissionDeniedError,
)
from scheduling.models.time_window import TimeWindow, contains
from scheduling.repositories.availability_repository import AvailabilityRepository
from scheduling.repositories.break_repository import BreakRepository
from scheduling.utils.time_utils import day_of_week as weekday_of, parse_local_date, require_time_input

logger = logging.getLogger(__name__)


def build_window(
    start_text: str,
    end_text: str,
    day_of_week: Optional[int] = None,
    specific_date: Optional[str] = None,
) -> TimeWindow:
    """Parse free-text boundaries and an anchor into a validated TimeWindow."""
    specific = parse_local_date(specific_date) if specific_date else None
    return TimeWindow(
        start_minute=require_time_input(start_text),
        end_minute=require_time_input(end_text),
        day_of_week=day_of_week,
        specific_date=specific,
    )


def anchor_like(candidate: TimeWindow, target: TimeWindow) -> Optional[TimeWindow]:
    """
    Re-anchor candidate onto target's day so the two can be compared.

    Recurring targets only match recurring candidates of the same weekday.
    Date-specific targets match candidates on the same date and recurring
    candidates whose weekday falls on that date. Returns None otherwise.
    """
    if target.is_recurring:
        if candidate.is_recurring and candidate.day_of_week == target.day_of_week:
            return candidate
        return None
    if candidate.specific_date == target.specific_date:
        return candidate
    if candidate.is_recurring and candidate.day_of_week == target.weekday:
        return candidate.on_date(target.specific_date)
    return None


class AvailabilityService:
    """Manage a tutor's availability windows."""

    def __init__(self, db: DBSession):
        self.db = db
        self.repo = AvailabilityRepository(db)
        self.break_repo = BreakRepository(db)

    def get_owned(self, tutor_id: str, window_id: str) -> TutorAvailability:
        row = self.repo.get_by_id(window_id)
        if not row:
            raise NotFoundError("Availability", window_id)
        if row.tutor_id != tutor_id:
            raise PermissionDeniedError("You can only change your own availability")
        return row

    def upsert(
        self,
        tutor_id: str,
        start_time: str,
        end_time: str,
        day_of_week: Optional[int] = None,
        specific_date: Optional[str] = None,
        notes: Optional[str] = None,
        window_id: Optional[str] = None,
    ) -> TutorAvailability:
        """
        Insert a new window, or replace an existing one when window_id is given.

        No overlap check against other availability is made. Replacing a
        window is refused if a break it contains would be left uncovered.
        """
        window = build_window(start_time, end_time, day_of_week, specific_date)
        specific = window.specific_date.isoformat() if window.specific_date else None

        if window_id is None:
            row = self.repo.create(
                tutor_id=tutor_id,
                start_time=window.start_time,
                end_time=window.end_time,
                day_of_week=window.day_of_week,
                specific_date=specific,
                notes=notes,
            )
            logger.info(f"Created availability {row.id} for tutor {tutor_id}: {window.label()}")
            return row

        existing = self.get_owned(tutor_id, window_id)
        self._ensure_no_orphaned_breaks(existing, replacement=window)
        row = self.repo.update(
            window_id,
            start_time=window.start_time,
            end_time=window.end_time,
            day_of_week=window.day_of_week,
            specific_date=specific,
            notes=notes,
        )
        logger.info(f"Updated availability {window_id} for tutor {tutor_id}: {window.label()}")
        return row

    def remove(self, tutor_id: str, window_id: str) -> None:
        row = self.get_owned(tutor_id, window_id)
        self._ensure_no_orphaned_breaks(row, replacement=None)
        self.repo.delete(window_id)
        logger.info(f"Removed availability {window_id} for tutor {tutor_id}")

    def list_by_day(self, tutor_id: str) -> dict[int, list[TutorAvailability]]:
        """Recurring windows for all seven days, each day sorted by start."""
        rows = self.repo.list_for_tutor(tutor_id, is_recurring=True)
        by_day = {day: [] for day in range(7)}
        for row in rows:
            by_day[row.day_of_week].append(row)
        for day_rows in by_day.values():
            day_rows.sort(key=lambda r: r.start_time)
        return by_day

    def list_for_tutor(
        self,
        tutor_id: str,
        day_of_week: Optional[int] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        is_recurring: Optional[bool] = None,
    ) -> list[TutorAvailability]:
        return self.repo.list_for_tutor(tutor_id, day_of_week, start_date, end_date, is_recurring)

    def windows_for_date(self, tutor_id: str, value: date) -> list[TimeWindow]:
        """
        Availability on a calendar date: date-specific windows plus recurring
        windows of its weekday, projected onto the date. Where both kinds
        cover an identical range only the date-specific one is kept.
        """
        specific = [TimeWindow.from_row(r) for r in self.repo.list_for_date(tutor_id, value.isoformat())]
        seen = {(w.start_minute, w.end_minute) for w in specific}
        windows = list(specific)
        for row in self.repo.list_for_day(tutor_id, weekday_of(value)):
            projected = TimeWindow.from_row(row).on_date(value)
            if (projected.start_minute, projected.end_minute) not in seen:
                seen.add((projected.start_minute, projected.end_minute))
                windows.append(projected)
        return sorted(windows, key=lambda w: (w.start_minute, w.end_minute))

    def covering_windows(
        self,
        tutor_id: str,
        target: TimeWindow,
        exclude_id: Optional[str] = None,
        replacement: Optional[TimeWindow] = None,
    ) -> list[TimeWindow]:
        """
        Availability windows that could contain a break at target, anchored
        like target. exclude_id and replacement preview an edit or removal.
        """
        if target.is_recurring:
            rows = self.repo.list_for_day(tutor_id, target.day_of_week)
        else:
            rows = (
                self.repo.list_for_date(tutor_id, target.specific_date.isoformat())
                + self.repo.list_for_day(tutor_id, target.weekday)
            )
        candidates = [TimeWindow.from_row(r) for r in rows if r.id != exclude_id]
        if replacement is not None:
            candidates.append(replacement)

        anchored = []
        for candidate in candidates:
            window = anchor_like(candidate, target)
            if window is not None:
                anchored.append(window)
        return anchored

    def _ensure_no_orphaned_breaks(
        self,
        row: TutorAvailability,
        replacement: Optional[TimeWindow],
    ) -> None:
        current = TimeWindow.from_row(row)
        if current.is_recurring:
            breaks = self.break_repo.list_for_day(row.tutor_id, current.day_of_week) + [
                b for b in self.break_repo.list_for_tutor(row.tutor_id, is_recurring=False)
                if weekday_of(parse_local_date(b.specific_date)) == current.day_of_week
            ]
        else:
            breaks = self.break_repo.list_for_date(row.tutor_id, row.specific_date)

        orphaned = []
        for break_row in breaks:
            break_window = TimeWindow.from_row(break_row)
            anchored = anchor_like(current, break_window)
            if anchored is None or not contains(anchored, break_window):
                continue
            remaining = self.covering_windows(
                row.tutor_id, break_window, exclude_id=row.id, replacement=replacement
            )
            if not any(contains(w, break_window) for w in remaining):
                orphaned.append(break_row.id)

        if orphaned:
            logger.warning(
                f"Refusing to change availability {row.id}: breaks {orphaned} depend on it"
            )
            raise AvailabilityHasBreaksError(row.id, orphaned)
