"""Lesson request data access layer."""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy.orm import Session as DBSession, joinedload

from shared.models.entities import LessonRequest


class LessonRequestRepository:
    """CRUD operations for the lesson_requests table."""

    def __init__(self, db: DBSession):
        self.db = db

    def _query(self):
        return self.db.query(LessonRequest).options(joinedload(LessonRequest.student))

    def get_by_id(self, request_id: str) -> Optional[LessonRequest]:
        return self._query().filter(LessonRequest.id == request_id).first()

    def get_many(self, request_ids: list[str]) -> list[Optional[LessonRequest]]:
        """Fetch requests keeping the caller's order; missing ids come back as None."""
        rows = self._query().filter(LessonRequest.id.in_(request_ids)).all()
        by_id = {row.id: row for row in rows}
        return [by_id.get(request_id) for request_id in request_ids]

    def list_for_tutor(self, tutor_id: str, status: Optional[str] = None) -> list[LessonRequest]:
        query = self._query().filter(LessonRequest.tutor_id == tutor_id)
        if status:
            query = query.filter(LessonRequest.status == status)
        return query.order_by(LessonRequest.created_at.desc(), LessonRequest.id.asc()).all()

    def list_for_parent(self, parent_id: str, status: Optional[str] = None) -> list[LessonRequest]:
        query = self._query().filter(LessonRequest.parent_id == parent_id)
        if status:
            query = query.filter(LessonRequest.status == status)
        return query.order_by(LessonRequest.created_at.desc(), LessonRequest.id.asc()).all()

    def list_group(self, request_group_id: str) -> list[LessonRequest]:
        return (
            self._query()
            .filter(LessonRequest.request_group_id == request_group_id)
            .order_by(LessonRequest.created_at.asc(), LessonRequest.id.asc())
            .all()
        )

    def create(
        self,
        parent_id: str,
        tutor_id: str,
        student_id: str,
        subject: str,
        preferred_date: str,
        preferred_time: Optional[str],
        preferred_duration: int,
        request_type: str,
        notes: Optional[str] = None,
        original_lesson_id: Optional[str] = None,
        request_group_id: Optional[str] = None,
        commit: bool = True,
    ) -> LessonRequest:
        now = datetime.utcnow()
        row = LessonRequest(
            id=str(uuid4()),
            parent_id=parent_id,
            tutor_id=tutor_id,
            student_id=student_id,
            subject=subject,
            preferred_date=preferred_date,
            preferred_time=preferred_time,
            preferred_duration=preferred_duration,
            notes=notes,
            request_type=request_type,
            original_lesson_id=original_lesson_id,
            request_group_id=request_group_id,
            status="pending",
            created_at=now,
            updated_at=now,
        )
        self.db.add(row)
        if commit:
            self.db.commit()
            self.db.refresh(row)
        else:
            self.db.flush()
        return row

    def update_status(
        self,
        request_id: str,
        status: str,
        tutor_response: Optional[str] = None,
        scheduled_lesson_id: Optional[str] = None,
        commit: bool = True,
    ) -> Optional[LessonRequest]:
        row = self.db.query(LessonRequest).filter(LessonRequest.id == request_id).first()
        if not row:
            return None
        row.status = status
        row.tutor_response = tutor_response
        row.scheduled_lesson_id = scheduled_lesson_id
        row.updated_at = datetime.utcnow()
        if commit:
            self.db.commit()
        else:
            self.db.flush()
        return row

    def delete(self, request_id: str) -> bool:
        row = self.db.query(LessonRequest).filter(LessonRequest.id == request_id).first()
        if not row:
            return False
        self.db.delete(row)
        self.db.commit()
        return True
