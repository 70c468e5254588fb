"""
Lesson request domain models.

Requests are a tagged union on request_type: a RescheduleRequest moves an
existing lesson (original_lesson_id required), a DropInRequest asks for a new
one (original_lesson_id forbidden). Code that branches on the variant goes
through the isinstance checks here so an unknown variant raises instead of
being handled as one of the known ones.
"""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

RequestStatus = Literal["pending", "approved", "rejected", "scheduled"]
Subject = Literal["piano", "math", "reading", "speech", "english"]


class _LessonRequestBase(BaseModel):
    """Fields shared by every request variant."""

    id: str
    parent_id: str
    tutor_id: str
    student_id: str
    student_name: str = "Student"
    subject: Subject
    preferred_date: str = Field(description="YYYY-MM-DD, local calendar date")
    preferred_time: Optional[str] = Field(default=None, description="HH:MM")
    preferred_duration: int = Field(default=60, gt=0, description="Minutes")
    notes: Optional[str] = None
    request_group_id: Optional[str] = None
    status: RequestStatus = "pending"
    tutor_response: Optional[str] = None
    scheduled_lesson_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class RescheduleRequest(_LessonRequestBase):
    """Move an existing scheduled lesson to a new date/time."""

    request_type: Literal["reschedule"] = "reschedule"
    original_lesson_id: str


class DropInRequest(_LessonRequestBase):
    """Ask for an additional lesson slot."""

    request_type: Literal["dropin"] = "dropin"
    original_lesson_id: None = None


LessonRequestVariant = Annotated[
    Union[RescheduleRequest, DropInRequest],
    Field(discriminator="request_type"),
]

_variant_adapter = TypeAdapter(LessonRequestVariant)


def to_variant(row) -> LessonRequestVariant:
    """Convert a LessonRequest ORM row into its typed variant."""
    student = getattr(row, "student", None)
    data = {
        "id": row.id,
        "parent_id": row.parent_id,
        "tutor_id": row.tutor_id,
        "student_id": row.student_id,
        "student_name": student.name if student is not None else "Student",
        "subject": row.subject,
        "preferred_date": row.preferred_date,
        "preferred_time": row.preferred_time,
        "preferred_duration": row.preferred_duration,
        "notes": row.notes,
        "request_group_id": row.request_group_id,
        "status": row.status,
        "tutor_response": row.tutor_response,
        "scheduled_lesson_id": row.scheduled_lesson_id,
        "created_at": row.created_at,
        "request_type": row.request_type,
        "original_lesson_id": row.original_lesson_id,
    }
    return _variant_adapter.validate_python(data)


def is_reschedule(request: LessonRequestVariant) -> bool:
    """Exhaustive variant check; raises on anything that is not a known variant."""
    if isinstance(request, RescheduleRequest):
        return True
    if isinstance(request, DropInRequest):
        return False
    raise TypeError(f"Unknown lesson request variant: {type(request).__name__}")


class GroupedRequestView(BaseModel):
    """
    One reviewable unit for the tutor: a combined session or a standalone request.

    Shared fields come from the first member in list order.
    """

    id: str = Field(description="request_group_id, or the request id for standalone requests")
    requests: list[LessonRequestVariant]
    is_combined_session: bool
    student_names: list[str]
    subjects: list[Subject]
    preferred_date: str
    preferred_time: Optional[str] = None
    preferred_duration: int
    notes: Optional[str] = None
    status: RequestStatus
    request_type: Literal["reschedule", "dropin"]
    tutor_response: Optional[str] = None
    created_at: datetime
    has_divergent_members: bool = False

    @property
    def request_ids(self) -> list[str]:
        return [r.id for r in self.requests]


class MemberOutcome(BaseModel):
    """Result of processing one member of an approve/reject call."""

    request_id: str
    succeeded: bool
    status: Optional[RequestStatus] = None
    scheduled_lesson_id: Optional[str] = None
    error: Optional[str] = None


class ApprovalOutcome(BaseModel):
    """Per-member results of an approve or reject call."""

    operation: Literal["approve", "reject"]
    members: list[MemberOutcome] = Field(default_factory=list)
    session_id: Optional[str] = None
    original_lesson_delete_failures: list[str] = Field(default_factory=list)
    notification_failures: list[str] = Field(default_factory=list)

    @property
    def failed_ids(self) -> list[str]:
        return [m.request_id for m in self.members if not m.succeeded]

    @property
    def succeeded(self) -> bool:
        return not self.failed_ids
