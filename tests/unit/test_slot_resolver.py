"""Tests for SlotResolver: bookable windows, availability checks and busy intervals."""
from datetime import date, datetime

import pytest

from scheduling.repositories.lesson_repository import LessonRepository
from scheduling.services.availability_service import AvailabilityService
from scheduling.services.break_service import BreakService
from scheduling.services.slot_resolver import SlotResolver

MONDAY = 1
A_MONDAY = date(2024, 3, 11)


@pytest.fixture
def resolver(db_session):
    return SlotResolver(db_session)


@pytest.fixture
def availability(db_session):
    return AvailabilityService(db_session)


@pytest.fixture
def breaks(db_session):
    return BreakService(db_session)


def spans(windows):
    return [(w.start_time, w.end_time) for w in windows]


# ===== bookable_windows_for_date =====


class TestBookableWindows:

    def test_break_inside_splits_window(self, resolver, availability, breaks, tutor):
        availability.upsert(tutor.id, "09:00", "17:00", day_of_week=MONDAY)
        breaks.upsert(tutor.id, "12:00", "13:00", day_of_week=MONDAY)
        assert spans(resolver.bookable_windows_for_date(tutor.id, A_MONDAY)) == [
            ("09:00", "12:00"), ("13:00", "17:00"),
        ]

    def test_break_touching_start_trims(self, resolver, availability, breaks, tutor):
        availability.upsert(tutor.id, "09:00", "17:00", day_of_week=MONDAY)
        breaks.upsert(tutor.id, "09:00", "10:00", day_of_week=MONDAY)
        assert spans(resolver.bookable_windows_for_date(tutor.id, A_MONDAY)) == [("10:00", "17:00")]

    def test_break_covering_window_drops_it(self, resolver, availability, breaks, tutor):
        availability.upsert(tutor.id, "09:00", "10:00", day_of_week=MONDAY)
        availability.upsert(tutor.id, "14:00", "15:00", day_of_week=MONDAY)
        breaks.upsert(tutor.id, "09:00", "10:00", day_of_week=MONDAY)
        assert spans(resolver.bookable_windows_for_date(tutor.id, A_MONDAY)) == [("14:00", "15:00")]

    def test_no_availability_means_no_slots(self, resolver, tutor):
        assert resolver.bookable_windows_for_date(tutor.id, A_MONDAY) == []

    def test_other_weekday_not_included(self, resolver, availability, tutor):
        availability.upsert(tutor.id, "09:00", "17:00", day_of_week=2)
        assert resolver.bookable_windows_for_date(tutor.id, A_MONDAY) == []

    def test_date_specific_availability_and_break(self, resolver, availability, breaks, tutor):
        availability.upsert(tutor.id, "09:00", "12:00", day_of_week=MONDAY)
        availability.upsert(tutor.id, "18:00", "20:00", specific_date="2024-03-11")
        breaks.upsert(tutor.id, "19:00", "19:30", specific_date="2024-03-11")
        assert spans(resolver.bookable_windows_for_date(tutor.id, A_MONDAY)) == [
            ("09:00", "12:00"), ("18:00", "19:00"), ("19:30", "20:00"),
        ]

    def test_date_specific_break_does_not_leak_to_other_mondays(self, resolver, availability, breaks, tutor):
        availability.upsert(tutor.id, "09:00", "17:00", day_of_week=MONDAY)
        breaks.upsert(tutor.id, "12:00", "13:00", specific_date="2024-03-11")
        assert spans(resolver.bookable_windows_for_date(tutor.id, date(2024, 3, 18))) == [("09:00", "17:00")]

    def test_overlapping_availability_is_merged(self, resolver, availability, tutor):
        availability.upsert(tutor.id, "09:00", "12:00", day_of_week=MONDAY)
        availability.upsert(tutor.id, "11:00", "14:00", day_of_week=MONDAY)
        assert spans(resolver.bookable_windows_for_date(tutor.id, A_MONDAY)) == [("09:00", "14:00")]


# ===== is_time_available =====


class TestIsTimeAvailable:

    @pytest.fixture(autouse=True)
    def schedule(self, availability, breaks, tutor):
        availability.upsert(tutor.id, "09:00", "17:00", day_of_week=MONDAY)
        breaks.upsert(tutor.id, "12:00", "13:00", day_of_week=MONDAY)

    def test_inside_a_window(self, resolver, tutor):
        assert resolver.is_time_available(tutor.id, A_MONDAY, 10 * 60, 11 * 60)

    def test_exactly_a_window(self, resolver, tutor):
        assert resolver.is_time_available(tutor.id, A_MONDAY, 13 * 60, 17 * 60)

    def test_across_break(self, resolver, tutor):
        assert not resolver.is_time_available(tutor.id, A_MONDAY, 11 * 60 + 30, 12 * 60 + 30)

    def test_outside_hours(self, resolver, tutor):
        assert not resolver.is_time_available(tutor.id, A_MONDAY, 8 * 60, 9 * 60)

    def test_empty_range(self, resolver, tutor):
        assert not resolver.is_time_available(tutor.id, A_MONDAY, 10 * 60, 10 * 60)


# ===== busy_intervals_for_date =====


class TestBusyIntervals:

    def test_lessons_sessions_and_breaks(self, resolver, availability, breaks, tutor, students, make_lesson, db_session):
        availability.upsert(tutor.id, "09:00", "17:00", day_of_week=MONDAY)
        breaks.upsert(tutor.id, "12:00", "13:00", day_of_week=MONDAY)
        make_lesson(students[0], scheduled_at=datetime(2024, 3, 11, 15, 0), duration_min=45)
        lessons = LessonRepository(db_session)
        session = lessons.create_session(tutor.id, datetime(2024, 3, 11, 10, 0), 90)
        make_lesson(students[1], scheduled_at=datetime(2024, 3, 11, 10, 0), duration_min=45, session_id=session.id)
        make_lesson(students[2], scheduled_at=datetime(2024, 3, 12, 10, 0))

        busy = resolver.busy_intervals_for_date(tutor.id, A_MONDAY)

        assert [(b.start.time().isoformat("minutes"), b.end.time().isoformat("minutes"), b.slot_type) for b in busy] == [
            ("10:00", "11:30", "session"),
            ("12:00", "13:00", "break"),
            ("15:00", "15:45", "lesson"),
        ]

    def test_cancelled_and_other_tutor_lessons_ignored(self, resolver, tutor, other_tutor, students, make_lesson, db_session):
        lesson = make_lesson(students[0], scheduled_at=datetime(2024, 3, 11, 15, 0))
        lesson.status = "cancelled"
        db_session.commit()
        make_lesson(students[1], scheduled_at=datetime(2024, 3, 11, 16, 0), tutor_id=other_tutor.id)
        assert resolver.busy_intervals_for_date(tutor.id, A_MONDAY) == []

    def test_weekly_pattern_projected_onto_empty_day(self, resolver, tutor, students, make_lesson):
        make_lesson(students[0], scheduled_at=datetime(2024, 3, 4, 15, 0), duration_min=30)
        busy = resolver.busy_intervals_for_date(tutor.id, A_MONDAY)
        assert len(busy) == 1
        assert busy[0].slot_type == "recurring_lesson"
        assert busy[0].start == datetime(2024, 3, 11, 15, 0)
        assert busy[0].end == datetime(2024, 3, 11, 15, 30)

    def test_no_projection_when_day_already_booked(self, resolver, tutor, students, make_lesson):
        make_lesson(students[0], scheduled_at=datetime(2024, 3, 4, 15, 0))
        make_lesson(students[1], scheduled_at=datetime(2024, 3, 11, 9, 0))
        busy = resolver.busy_intervals_for_date(tutor.id, A_MONDAY)
        assert [b.slot_type for b in busy] == ["lesson"]
