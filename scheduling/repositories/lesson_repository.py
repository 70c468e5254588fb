"""Scheduled lesson and lesson session data access layer."""

from datetime import date, datetime, timedelta
from typing import Optional
from uuid import uuid4

from sqlalchemy.orm import Session as DBSession

from shared.models.entities import LessonSession, ScheduledLesson


class LessonRepository:
    """Create, look up and delete scheduled lessons and combined sessions."""

    def __init__(self, db: DBSession):
        self.db = db

    def get_by_id(self, lesson_id: str) -> Optional[ScheduledLesson]:
        return self.db.query(ScheduledLesson).filter(ScheduledLesson.id == lesson_id).first()

    def create_session(
        self,
        tutor_id: str,
        scheduled_at: datetime,
        duration_min: int,
        notes: Optional[str] = None,
        commit: bool = True,
    ) -> LessonSession:
        session = LessonSession(
            id=str(uuid4()),
            tutor_id=tutor_id,
            scheduled_at=scheduled_at,
            duration_min=duration_min,
            notes=notes,
            created_at=datetime.utcnow(),
        )
        self.db.add(session)
        if commit:
            self.db.commit()
            self.db.refresh(session)
        else:
            self.db.flush()
        return session

    def create_lesson(
        self,
        tutor_id: str,
        student_id: str,
        subject: str,
        scheduled_at: datetime,
        duration_min: int,
        notes: Optional[str] = None,
        session_id: Optional[str] = None,
        commit: bool = True,
    ) -> ScheduledLesson:
        now = datetime.utcnow()
        lesson = ScheduledLesson(
            id=str(uuid4()),
            tutor_id=tutor_id,
            student_id=student_id,
            subject=subject,
            scheduled_at=scheduled_at,
            duration_min=duration_min,
            status="scheduled",
            notes=notes,
            session_id=session_id,
            created_at=now,
            updated_at=now,
        )
        self.db.add(lesson)
        if commit:
            self.db.commit()
            self.db.refresh(lesson)
        else:
            self.db.flush()
        return lesson

    def delete_lesson(self, lesson_id: str) -> bool:
        lesson = self.get_by_id(lesson_id)
        if not lesson:
            return False
        self.db.delete(lesson)
        self.db.commit()
        return True

    def delete_session(self, session_id: str) -> bool:
        """Delete a combined session that no lesson references."""
        session = self.db.query(LessonSession).filter(LessonSession.id == session_id).first()
        if not session:
            return False
        self.db.delete(session)
        self.db.commit()
        return True

    def _day_bounds(self, value: date) -> tuple[datetime, datetime]:
        day_start = datetime.combine(value, datetime.min.time())
        return day_start, day_start + timedelta(days=1)

    def list_scheduled_on(
        self,
        tutor_id: str,
        value: date,
        standalone_only: bool = False,
    ) -> list[ScheduledLesson]:
        """Lessons with status 'scheduled' starting on the given local date."""
        day_start, day_end = self._day_bounds(value)
        query = self.db.query(ScheduledLesson).filter(
            ScheduledLesson.tutor_id == tutor_id,
            ScheduledLesson.status == "scheduled",
            ScheduledLesson.scheduled_at >= day_start,
            ScheduledLesson.scheduled_at < day_end,
        )
        if standalone_only:
            query = query.filter(ScheduledLesson.session_id.is_(None))
        return query.order_by(ScheduledLesson.scheduled_at.asc()).all()

    def list_sessions_on(self, tutor_id: str, value: date) -> list[LessonSession]:
        day_start, day_end = self._day_bounds(value)
        return (
            self.db.query(LessonSession)
            .filter(
                LessonSession.tutor_id == tutor_id,
                LessonSession.scheduled_at >= day_start,
                LessonSession.scheduled_at < day_end,
            )
            .order_by(LessonSession.scheduled_at.asc())
            .all()
        )

    def find_reference_date(self, tutor_id: str, value: date, lookback_days: int = 28) -> Optional[date]:
        """
        Most recent earlier date on the same weekday, within the lookback,
        that has a scheduled lesson. Used to project a weekly pattern.
        """
        window_start = datetime.combine(value - timedelta(days=lookback_days), datetime.min.time())
        window_end = datetime.combine(value, datetime.min.time())
        rows = (
            self.db.query(ScheduledLesson.scheduled_at)
            .filter(
                ScheduledLesson.tutor_id == tutor_id,
                ScheduledLesson.status == "scheduled",
                ScheduledLesson.scheduled_at >= window_start,
                ScheduledLesson.scheduled_at < window_end,
            )
            .order_by(ScheduledLesson.scheduled_at.desc())
            .all()
        )
        for (scheduled_at,) in rows:
            if scheduled_at.weekday() == value.weekday():
                return scheduled_at.date()
        return None
