"""
Slot Resolver

Computes what a parent can actually book on a date: the tutor's
availability for that day (recurring plus date-specific, merged as a union)
minus every break that sits inside it. Also reports the busy intervals
already taken by lessons, sessions and breaks.
"""

import logging
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session as DBSession

from scheduling.models.schemas import BusyInterval
from scheduling.models.time_window import TimeWindow, contains, merge_windows, subtract
from scheduling.repositories.break_repository import BreakRepository
from scheduling.repositories.lesson_repository import LessonRepository
from scheduling.services.availability_service import AvailabilityService
from scheduling.utils.time_utils import combine_local, day_of_week as weekday_of

logger = logging.getLogger(__name__)


class SlotResolver:
    """Resolve bookable and busy time for one tutor."""

    def __init__(self, db: DBSession):
        self.db = db
        self.availability = AvailabilityService(db)
        self.break_repo = BreakRepository(db)
        self.lesson_repo = LessonRepository(db)

    def breaks_for_date(self, tutor_id: str, value: date) -> list[TimeWindow]:
        """Recurring breaks of the weekday and date-specific breaks, projected onto the date."""
        breaks = [TimeWindow.from_row(r) for r in self.break_repo.list_for_date(tutor_id, value.isoformat())]
        for row in self.break_repo.list_for_day(tutor_id, weekday_of(value)):
            breaks.append(TimeWindow.from_row(row).on_date(value))
        return sorted(breaks, key=lambda w: (w.start_minute, w.end_minute))

    def bookable_windows_for_date(self, tutor_id: str, value: date) -> list[TimeWindow]:
        available = self.availability.windows_for_date(tutor_id, value)
        breaks = [
            b for b in self.breaks_for_date(tutor_id, value)
            if any(contains(a, b) for a in available)
        ]

        windows = merge_windows(available)
        for cut in breaks:
            pieces = []
            for window in windows:
                pieces.extend(subtract(window, cut))
            windows = pieces

        windows = [w for w in windows if w.duration_minutes > 0]
        return sorted(windows, key=lambda w: w.start_minute)

    def is_time_available(self, tutor_id: str, value: date, start_minute: int, end_minute: int) -> bool:
        """True when [start, end) lies fully inside one bookable window."""
        if start_minute >= end_minute:
            return False
        return any(
            w.start_minute <= start_minute and end_minute <= w.end_minute
            for w in self.bookable_windows_for_date(tutor_id, value)
        )

    def busy_intervals_for_date(self, tutor_id: str, value: date) -> list[BusyInterval]:
        """
        Time already taken on a date: combined sessions (full length),
        standalone scheduled lessons and breaks. When the date has nothing
        booked yet, the most recent same-weekday date in the last four weeks
        is projected forward as the expected weekly pattern.
        """
        busy = []
        sessions = self.lesson_repo.list_sessions_on(tutor_id, value)
        lessons = self.lesson_repo.list_scheduled_on(tutor_id, value, standalone_only=True)
        for session in sessions:
            busy.append(_interval(session.scheduled_at, session.duration_min, "session"))
        for lesson in lessons:
            busy.append(_interval(lesson.scheduled_at, lesson.duration_min, "lesson"))

        booked_today = self.lesson_repo.list_scheduled_on(tutor_id, value)
        if not booked_today:
            reference = self.lesson_repo.find_reference_date(tutor_id, value)
            if reference is not None:
                logger.debug(f"Projecting weekly pattern from {reference} onto {value} for tutor {tutor_id}")
                if not sessions:
                    for session in self.lesson_repo.list_sessions_on(tutor_id, reference):
                        start = datetime.combine(value, session.scheduled_at.time())
                        busy.append(_interval(start, session.duration_min, "recurring_session"))
                for lesson in self.lesson_repo.list_scheduled_on(tutor_id, reference, standalone_only=True):
                    start = datetime.combine(value, lesson.scheduled_at.time())
                    busy.append(_interval(start, lesson.duration_min, "recurring_lesson"))

        for cut in self.breaks_for_date(tutor_id, value):
            busy.append(BusyInterval(
                start=combine_local(value, cut.start_time),
                end=combine_local(value, cut.end_time),
                slot_type="break",
            ))

        return sorted(busy, key=lambda b: (b.start, b.end))


def _interval(start: datetime, duration_min: int, slot_type: str) -> BusyInterval:
    return BusyInterval(start=start, end=start + timedelta(minutes=duration_min), slot_type=slot_type)
