"""
Lesson request intake: parents create and withdraw requests, tutors list
and count them. Approval and rejection live in approval_service.
"""

import logging
from collections import OrderedDict
from typing import Optional
from uuid import uuid4

from sqlalchemy.orm import Session as DBSession

from auth.repositories.user_repository import UserRepository
from config import get_settings
from shared.models.entities import User
from shared.utils.constants import MINUTES_PER_DAY
from shared.utils.exceptions import (
    DatabaseException,
    InvalidRequestError,
    InvalidStateError,
    NotFoundError,
    PermissionDeniedError,
    SlotUnavailableError,
)
from scheduling.models.requests import GroupedRequestView, LessonRequestVariant, to_variant
from scheduling.models.schemas import LessonRequestCreate
from scheduling.repositories.lesson_repository import LessonRepository
from scheduling.repositories.lesson_request_repository import LessonRequestRepository
from scheduling.services.notification_service import NotificationService
from scheduling.services.request_grouping import group_requests
from scheduling.services.slot_resolver import SlotResolver
from scheduling.utils.time_utils import minutes_to_time, parse_local_date, require_time_input

logger = logging.getLogger(__name__)


class RequestService:
    """Create, list, count and delete lesson requests."""

    def __init__(self, db: DBSession, notifications: Optional[NotificationService] = None):
        self.db = db
        self.requests = LessonRequestRepository(db)
        self.lessons = LessonRepository(db)
        self.users = UserRepository(db)
        self.slots = SlotResolver(db)
        self.notifications = notifications or NotificationService(db)

    def create(self, parent: User, body: LessonRequestCreate) -> list[LessonRequestVariant]:
        """
        Create one request per student. Several students share a fresh
        request_group_id and are reviewed as one combined session.

        All validation happens before the rows are written, and the rows
        are written in one commit.
        """
        tutor = self.users.get_by_id(body.tutor_id)
        if not tutor or tutor.role != "tutor":
            raise NotFoundError("Tutor", body.tutor_id)

        student_ids = list(OrderedDict.fromkeys(body.student_ids))
        students = {s.id: s for s in self.users.get_students(student_ids)}
        for student_id in student_ids:
            student = students.get(student_id)
            if student is None:
                raise NotFoundError("Student", student_id)
            if student.parent_id != parent.id:
                raise PermissionDeniedError(f"Student {student_id} does not belong to you")

        preferred_date = parse_local_date(body.preferred_date)
        preferred_time = None
        if body.preferred_time:
            preferred_time = minutes_to_time(require_time_input(body.preferred_time))

        original_lessons = self._validate_variant(body, student_ids)

        if preferred_time and get_settings().enforce_slot_availability:
            self._ensure_slot_available(body.tutor_id, body.preferred_date, preferred_time, body.preferred_duration)

        group_id = str(uuid4()) if len(student_ids) > 1 else None
        try:
            rows = [
                self.requests.create(
                    parent_id=parent.id,
                    tutor_id=body.tutor_id,
                    student_id=student_id,
                    subject=body.subject,
                    preferred_date=preferred_date.isoformat(),
                    preferred_time=preferred_time,
                    preferred_duration=body.preferred_duration,
                    request_type=body.request_type,
                    notes=body.notes,
                    original_lesson_id=original_lessons.get(student_id),
                    request_group_id=group_id,
                    commit=False,
                )
                for student_id in student_ids
            ]
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Failed to create lesson request for parent {parent.id}: {e}", exc_info=True)
            raise DatabaseException("create lesson request", e)

        created = [to_variant(row) for row in rows]
        logger.info(
            f"Created {body.request_type} request(s) {[r.id for r in created]} "
            f"for tutor {body.tutor_id} (group={group_id})"
        )

        original_lesson_date = None
        if original_lessons:
            first_lesson = self.lessons.get_by_id(original_lessons[student_ids[0]])
            if first_lesson is not None:
                original_lesson_date = first_lesson.scheduled_at.date().isoformat()
        failures = self.notifications.enqueue_request_created(
            request_ids=[r.id for r in created],
            tutor_id=body.tutor_id,
            parent_id=parent.id,
            parent_name=parent.name or "A parent",
            student_names=[r.student_name for r in created],
            subject=body.subject,
            request_type=body.request_type,
            preferred_date=preferred_date.isoformat(),
            preferred_time=preferred_time,
            notes=body.notes,
            original_lesson_date=original_lesson_date,
        )
        if failures:
            logger.warning(f"Requests {[r.id for r in created]} created but tutor notification failed")
        return created

    def _validate_variant(self, body: LessonRequestCreate, student_ids: list[str]) -> dict[str, str]:
        """Check the reschedule / drop-in specific fields; returns student_id -> original lesson id."""
        if body.request_type == "dropin":
            if body.original_lesson_ids:
                raise InvalidRequestError("Drop-in requests cannot reference an existing lesson")
            return {}
        if body.request_type == "reschedule":
            originals = {}
            for student_id in student_ids:
                lesson_id = body.original_lesson_ids.get(student_id)
                if not lesson_id:
                    raise InvalidRequestError(f"Reschedule request for student {student_id} needs the lesson to move")
                lesson = self.lessons.get_by_id(lesson_id)
                if lesson is None or lesson.student_id != student_id or lesson.tutor_id != body.tutor_id:
                    raise NotFoundError("Lesson", lesson_id)
                originals[student_id] = lesson_id
            return originals
        raise InvalidRequestError(f"Unknown request type: {body.request_type}")

    def _ensure_slot_available(self, tutor_id: str, date_str: str, start_time: str, duration: int) -> None:
        start = require_time_input(start_time)
        end = start + duration
        end_label = minutes_to_time(end) if end < MINUTES_PER_DAY else "24:00"
        if end > MINUTES_PER_DAY or not self.slots.is_time_available(
            tutor_id, parse_local_date(date_str), start, end
        ):
            raise SlotUnavailableError(date_str, start_time, end_label)

    def list_for_tutor(self, tutor_id: str, status: Optional[str] = None) -> list[LessonRequestVariant]:
        return [to_variant(row) for row in self.requests.list_for_tutor(tutor_id, status)]

    def list_for_parent(self, parent_id: str, status: Optional[str] = None) -> list[LessonRequestVariant]:
        return [to_variant(row) for row in self.requests.list_for_parent(parent_id, status)]

    def grouped_for_tutor(self, tutor_id: str, status: Optional[str] = None) -> list[GroupedRequestView]:
        return group_requests(self.list_for_tutor(tutor_id, status))

    def pending_count(self, tutor_id: str) -> int:
        """Number of pending reviewable units; a combined session counts once."""
        return len(self.grouped_for_tutor(tutor_id, "pending"))

    def delete(self, request_id: str, parent_id: str) -> None:
        """Withdraw a request. Only the parent who made it may, and only while pending."""
        row = self.requests.get_by_id(request_id)
        if not row:
            raise NotFoundError("Lesson request", request_id)
        if row.parent_id != parent_id:
            raise PermissionDeniedError("You can only delete your own requests")
        if row.status != "pending":
            raise InvalidStateError(request_id, row.status, "delete")
        self.requests.delete(request_id)
        logger.info(f"Parent {parent_id} deleted request {request_id}")
