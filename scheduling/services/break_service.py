"""
Break Set

Breaks are carved out of availability. Every create and every edit checks
that the break sits fully inside one availability window on the same day;
recurring breaks are checked against recurring availability, date-specific
breaks against that date's availability including the recurring windows
of its weekday.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session as DBSession

from config import get_settings
from shared.models.entities import TutorBreak
from shared.utils.exceptions import (
    BreakOutsideAvailabilityError,
    NotFoundError,
    PermissionDeniedError,
)
from scheduling.models.time_window import TimeWindow, contains
from scheduling.repositories.availability_repository import AvailabilityRepository
from scheduling.repositories.break_repository import BreakRepository
from scheduling.services.availability_service import AvailabilityService, build_window
from scheduling.utils.time_utils import day_name

logger = logging.getLogger(__name__)


class BreakService:
    """Manage a tutor's breaks."""

    def __init__(self, db: DBSession):
        self.db = db
        self.repo = BreakRepository(db)
        self.availability = AvailabilityService(db)

    def get_owned(self, tutor_id: str, break_id: str) -> TutorBreak:
        row = self.repo.get_by_id(break_id)
        if not row:
            raise NotFoundError("Break", break_id)
        if row.tutor_id != tutor_id:
            raise PermissionDeniedError("You can only change your own breaks")
        return row

    def validate_containment(self, tutor_id: str, window: TimeWindow) -> None:
        """Raise BreakOutsideAvailabilityError unless some same-day availability contains window."""
        candidates = self.availability.covering_windows(tutor_id, window)
        if not any(contains(candidate, window) for candidate in candidates):
            anchor = day_name(window.day_of_week) if window.is_recurring else window.specific_date.isoformat()
            raise BreakOutsideAvailabilityError(window.start_time, window.end_time, anchor)

    def upsert(
        self,
        tutor_id: str,
        start_time: str,
        end_time: str,
        day_of_week: Optional[int] = None,
        specific_date: Optional[str] = None,
        notes: Optional[str] = None,
        break_id: Optional[str] = None,
    ) -> TutorBreak:
        window = build_window(start_time, end_time, day_of_week, specific_date)
        if break_id is not None:
            self.get_owned(tutor_id, break_id)
        self.validate_containment(tutor_id, window)

        specific = window.specific_date.isoformat() if window.specific_date else None
        if break_id is None:
            row = self.repo.create(
                tutor_id=tutor_id,
                start_time=window.start_time,
                end_time=window.end_time,
                day_of_week=window.day_of_week,
                specific_date=specific,
                notes=notes,
            )
            logger.info(f"Created break {row.id} for tutor {tutor_id}: {window.label()}")
            return row

        row = self.repo.update(
            break_id,
            start_time=window.start_time,
            end_time=window.end_time,
            day_of_week=window.day_of_week,
            specific_date=specific,
            notes=notes,
        )
        logger.info(f"Updated break {break_id} for tutor {tutor_id}: {window.label()}")
        return row

    def remove(self, tutor_id: str, break_id: str) -> None:
        self.get_owned(tutor_id, break_id)
        self.repo.delete(break_id)
        logger.info(f"Removed break {break_id} for tutor {tutor_id}")

    def list_by_day(self, tutor_id: str) -> dict[int, list[TutorBreak]]:
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
    ) -> list[TutorBreak]:
        return self.repo.list_for_tutor(tutor_id, day_of_week, start_date, end_date, is_recurring)

    def suggest_default_break(self, tutor_id: str, day_of_week: int) -> Optional[TimeWindow]:
        """
        Propose a break centered on the midpoint of the day's earliest
        availability window, shifted to stay inside it. Shorter windows get
        a break as long as the window. None when the day has no availability.
        """
        rows = AvailabilityRepository(self.db).list_for_day(tutor_id, day_of_week)
        if not rows:
            return None
        first = TimeWindow.from_row(rows[0])
        length = min(get_settings().default_break_minutes, first.duration_minutes)
        midpoint = (first.start_minute + first.end_minute) // 2
        start = midpoint - length // 2
        start = max(first.start_minute, min(start, first.end_minute - length))
        return first.with_bounds(start, start + length)
