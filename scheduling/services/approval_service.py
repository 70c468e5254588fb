"""
Approval state machine for lesson requests.

State machine: pending → approved | scheduled | rejected

approved and scheduled both mean accepted; scheduled additionally has a
materialized lesson. All three are terminal. A call covers one standalone
request or every member of one request group, never part of a group.
Every member is validated before anything is written, then processed one at a
time in list order, each in its own commit. A member that fails is rolled
back on its own and reported; members already written stay written.
"""

import logging
from collections import OrderedDict
from typing import Optional

from sqlalchemy.orm import Session as DBSession

from shared.utils.exceptions import (
    InvalidRequestError,
    InvalidStateError,
    NotFoundError,
    PartialGroupFailureError,
    PermissionDeniedError,
)
from scheduling.models.requests import (
    ApprovalOutcome,
    LessonRequestVariant,
    MemberOutcome,
    is_reschedule,
    to_variant,
)
from scheduling.repositories.lesson_repository import LessonRepository
from scheduling.repositories.lesson_request_repository import LessonRequestRepository
from scheduling.services.notification_service import NotificationService
from scheduling.services.request_grouping import group_requests
from scheduling.utils.time_utils import combine_local, parse_local_date

logger = logging.getLogger(__name__)


def _notes_prefix(request: LessonRequestVariant) -> str:
    return "Rescheduled" if is_reschedule(request) else "Drop-in"


class ApprovalService:
    """Approve or reject a group of lesson requests on behalf of a tutor."""

    def __init__(self, db: DBSession, notifications: Optional[NotificationService] = None):
        self.db = db
        self.requests = LessonRequestRepository(db)
        self.lessons = LessonRepository(db)
        self.notifications = notifications or NotificationService(db)

    def _load_pending(
        self,
        tutor_id: str,
        request_ids: list[str],
        operation: str,
    ) -> list[LessonRequestVariant]:
        """
        Fetch and validate every member; raises before any write.

        The ids must name exactly one reviewable unit: a single standalone
        request, or every request sharing one request_group_id. Members are
        returned in the caller's order.
        """
        unique_ids = list(OrderedDict.fromkeys(request_ids))
        rows = self.requests.get_many(unique_ids)
        for request_id, row in zip(unique_ids, rows):
            if row is None:
                raise NotFoundError("Lesson request", request_id)
            if row.tutor_id != tutor_id:
                raise PermissionDeniedError(f"Lesson request {request_id} is not addressed to you")

        group_ids = {row.request_group_id for row in rows}
        if len(group_ids) > 1:
            raise InvalidRequestError(
                f"Requests {unique_ids} belong to different groups; {operation} one group at a time"
            )
        group_id = group_ids.pop()
        if group_id is None and len(rows) > 1:
            raise InvalidRequestError(
                f"Requests {unique_ids} are standalone; {operation} them one at a time"
            )
        if group_id is not None:
            group_member_ids = {row.id for row in self.requests.list_group(group_id)}
            missing = sorted(group_member_ids - set(unique_ids))
            if missing:
                raise InvalidRequestError(
                    f"Group {group_id} also contains requests {missing}; {operation} the whole group"
                )

        for request_id, row in zip(unique_ids, rows):
            if row.status != "pending":
                raise InvalidStateError(request_id, row.status, operation)
        return [to_variant(row) for row in rows]

    def approve(
        self,
        tutor_id: str,
        request_ids: list[str],
        tutor_response: Optional[str] = None,
        should_create_lesson: bool = True,
    ) -> ApprovalOutcome:
        """
        Approve every member of a group.

        Without lesson creation members become approved. With it, one
        lesson per member is created at the group's preferred date and time
        and members become scheduled; a combined session also gets a
        LessonSession holding the full duration while each member lesson
        gets duration // member_count minutes. Reschedule members have their
        original lesson deleted once the new one exists.

        Raises:
            InvalidRequestError: if the ids are not exactly one whole group,
                or the duration cannot give every member at least a minute
            PartialGroupFailureError: if any member could not be processed
        """
        members = self._load_pending(tutor_id, request_ids, "approve")
        first = members[0]
        if group_requests(members)[0].has_divergent_members:
            logger.warning(
                f"Group {first.request_group_id} members differ in date, time or duration; "
                f"using {first.preferred_date} {first.preferred_time} {first.preferred_duration}min from {first.id}"
            )

        outcome = ApprovalOutcome(operation="approve")
        is_combined = len(members) > 1
        scheduled_at = combine_local(parse_local_date(first.preferred_date), first.preferred_time)
        lesson_duration = first.preferred_duration // len(members) if is_combined else first.preferred_duration
        if should_create_lesson and lesson_duration < 1:
            raise InvalidRequestError(
                f"{first.preferred_duration} minutes cannot be split across {len(members)} students"
            )

        session_id = None
        if should_create_lesson and is_combined:
            try:
                session = self.lessons.create_session(
                    tutor_id=tutor_id,
                    scheduled_at=scheduled_at,
                    duration_min=first.preferred_duration,
                    notes=f"{_notes_prefix(first)} combined session: {first.notes or 'No notes'}",
                )
                session_id = session.id
                outcome.session_id = session_id
            except Exception as e:
                self.db.rollback()
                logger.error(f"Could not create lesson session for requests {[m.id for m in members]}: {e}", exc_info=True)
                outcome.members = [
                    MemberOutcome(request_id=m.id, succeeded=False, error=f"Session creation failed: {e}")
                    for m in members
                ]
                raise PartialGroupFailureError("approve", outcome.failed_ids, outcome)

        for member in members:
            try:
                lesson_id = None
                if should_create_lesson:
                    lesson = self.lessons.create_lesson(
                        tutor_id=tutor_id,
                        student_id=member.student_id,
                        subject=member.subject,
                        scheduled_at=scheduled_at,
                        duration_min=lesson_duration,
                        notes=f"{_notes_prefix(member)} from request: {member.notes or 'No notes'}",
                        session_id=session_id,
                        commit=False,
                    )
                    lesson_id = lesson.id
                new_status = "scheduled" if should_create_lesson else "approved"
                self.requests.update_status(
                    member.id,
                    status=new_status,
                    tutor_response=tutor_response,
                    scheduled_lesson_id=lesson_id,
                    commit=False,
                )
                self.db.commit()
                logger.info(f"Request {member.id} transitioned pending → {new_status}")
                outcome.members.append(MemberOutcome(
                    request_id=member.id,
                    succeeded=True,
                    status=new_status,
                    scheduled_lesson_id=lesson_id,
                ))
            except Exception as e:
                self.db.rollback()
                logger.error(f"Failed to approve request {member.id}: {e}", exc_info=True)
                outcome.members.append(MemberOutcome(request_id=member.id, succeeded=False, error=str(e)))

        succeeded = self._succeeded_members(members, outcome)
        if session_id is not None and not succeeded:
            self._drop_empty_session(session_id, outcome)
        self._delete_original_lessons(succeeded, outcome)
        self._notify(succeeded, True, tutor_id, tutor_response, should_create_lesson, outcome)

        if outcome.failed_ids:
            logger.error(f"Approval partially failed; failed requests: {outcome.failed_ids}")
            raise PartialGroupFailureError("approve", outcome.failed_ids, outcome)
        return outcome

    def reject(
        self,
        tutor_id: str,
        request_ids: list[str],
        reason: Optional[str] = None,
    ) -> ApprovalOutcome:
        """Reject every member of a group with reason as the tutor response."""
        members = self._load_pending(tutor_id, request_ids, "reject")
        outcome = ApprovalOutcome(operation="reject")

        for member in members:
            try:
                self.requests.update_status(member.id, status="rejected", tutor_response=reason)
                logger.info(f"Request {member.id} transitioned pending → rejected")
                outcome.members.append(MemberOutcome(request_id=member.id, succeeded=True, status="rejected"))
            except Exception as e:
                self.db.rollback()
                logger.error(f"Failed to reject request {member.id}: {e}", exc_info=True)
                outcome.members.append(MemberOutcome(request_id=member.id, succeeded=False, error=str(e)))

        succeeded = self._succeeded_members(members, outcome)
        self._notify(succeeded, False, tutor_id, reason, False, outcome)

        if outcome.failed_ids:
            logger.error(f"Rejection partially failed; failed requests: {outcome.failed_ids}")
            raise PartialGroupFailureError("reject", outcome.failed_ids, outcome)
        return outcome

    @staticmethod
    def _succeeded_members(
        members: list[LessonRequestVariant],
        outcome: ApprovalOutcome,
    ) -> list[tuple[LessonRequestVariant, MemberOutcome]]:
        results = {m.request_id: m for m in outcome.members}
        return [(m, results[m.id]) for m in members if results[m.id].succeeded]

    def _drop_empty_session(self, session_id: str, outcome: ApprovalOutcome) -> None:
        """Remove a combined session none of whose member lessons were created."""
        try:
            self.lessons.delete_session(session_id)
            outcome.session_id = None
            logger.info(f"Deleted lesson session {session_id}; no member lesson was created")
        except Exception as e:
            self.db.rollback()
            logger.error(f"Could not delete empty lesson session {session_id}: {e}", exc_info=True)

    def _delete_original_lessons(
        self,
        succeeded: list[tuple[LessonRequestVariant, MemberOutcome]],
        outcome: ApprovalOutcome,
    ) -> None:
        for member, result in succeeded:
            if not is_reschedule(member) or result.scheduled_lesson_id is None:
                continue
            try:
                if not self.lessons.delete_lesson(member.original_lesson_id):
                    logger.warning(
                        f"Original lesson {member.original_lesson_id} for request {member.id} was already gone"
                    )
                else:
                    logger.info(f"Deleted original lesson {member.original_lesson_id} for request {member.id}")
            except Exception as e:
                self.db.rollback()
                logger.error(
                    f"Could not delete original lesson {member.original_lesson_id} "
                    f"for request {member.id}: {e}",
                    exc_info=True,
                )
                outcome.original_lesson_delete_failures.append(member.original_lesson_id)

    def _notify(
        self,
        succeeded: list[tuple[LessonRequestVariant, MemberOutcome]],
        approved: bool,
        tutor_id: str,
        tutor_response: Optional[str],
        is_scheduled: bool,
        outcome: ApprovalOutcome,
    ) -> None:
        """Queue one notification per affected parent, naming all of their students."""
        by_parent: "OrderedDict[str, list[LessonRequestVariant]]" = OrderedDict()
        for member, _ in succeeded:
            by_parent.setdefault(member.parent_id, []).append(member)

        for parent_id, parent_members in by_parent.items():
            first = parent_members[0]
            try:
                failures = self.notifications.enqueue_decision(
                    approved=approved,
                    tutor_id=tutor_id,
                    parent_id=parent_id,
                    student_names=[m.student_name for m in parent_members],
                    subject=first.subject,
                    request_type="reschedule" if is_reschedule(first) else "dropin",
                    preferred_date=first.preferred_date,
                    tutor_response=tutor_response,
                    request_group_id=first.request_group_id,
                    is_scheduled=is_scheduled,
                )
            except Exception as e:
                logger.error(f"Could not queue notification for parent {parent_id}: {e}", exc_info=True)
                failures = [str(e)]
            outcome.notification_failures.extend(failures)
