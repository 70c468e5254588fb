"""Pydantic API request/response schemas."""
from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from scheduling.models.requests import Subject


class WindowInput(BaseModel):
    """Availability or break window as entered by the tutor."""
    start_time: str = Field(description="HH:MM, H:MM AM/PM or HHMM")
    end_time: str = Field(description="HH:MM, H:MM AM/PM or HHMM")
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6, description="0=Sunday")
    specific_date: Optional[str] = Field(default=None, description="YYYY-MM-DD")
    notes: Optional[str] = None


class WindowResponse(BaseModel):
    """Stored availability or break window."""
    id: str
    tutor_id: str
    day_of_week: Optional[int] = None
    specific_date: Optional[str] = None
    start_time: str
    end_time: str
    notes: Optional[str] = None
    is_recurring: bool

    model_config = {"from_attributes": True}


class WeeklyWindowsResponse(BaseModel):
    """Recurring windows keyed by day of week (0=Sunday), each list sorted by start."""
    tutor_id: str
    days: Dict[int, List[WindowResponse]]


class BreakSuggestionResponse(BaseModel):
    day_of_week: int
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class SlotWindow(BaseModel):
    start_time: str
    end_time: str


class BookableSlotsResponse(BaseModel):
    """Bookable windows for one tutor on one date, breaks already removed."""
    tutor_id: str
    date: str
    day_of_week: int
    windows: List[SlotWindow]


class SlotCheckResponse(BaseModel):
    tutor_id: str
    date: str
    start_time: str
    end_time: str
    available: bool


class BusyInterval(BaseModel):
    """A blocked stretch of a tutor's day."""
    start: datetime
    end: datetime
    slot_type: Literal["lesson", "session", "recurring_lesson", "recurring_session", "break"]


class LessonRequestCreate(BaseModel):
    """
    Parent-submitted request for one or more students.

    More than one student makes a combined session sharing one group id.
    Reschedule requests name the lesson being moved for every student.
    """
    tutor_id: str
    student_ids: List[str] = Field(min_length=1)
    subject: Subject
    preferred_date: str = Field(description="YYYY-MM-DD")
    preferred_time: Optional[str] = Field(default=None, description="HH:MM, H:MM AM/PM or HHMM")
    preferred_duration: int = Field(default=60, gt=0)
    notes: Optional[str] = None
    request_type: Literal["reschedule", "dropin"]
    original_lesson_ids: Dict[str, str] = Field(
        default_factory=dict,
        description="student_id -> lesson being rescheduled"
    )


class ApproveRequestsBody(BaseModel):
    request_ids: List[str] = Field(min_length=1)
    tutor_response: Optional[str] = None
    should_create_lesson: bool = True


class RejectRequestsBody(BaseModel):
    request_ids: List[str] = Field(min_length=1)
    reason: Optional[str] = None


class PendingCountResponse(BaseModel):
    count: int


class DispatchResponse(BaseModel):
    """Counts from one outbox delivery pass."""
    sent: int
    failed: int
    retrying: int


class NotificationResponse(BaseModel):
    """Delivered in-app notification."""
    id: str
    recipient_id: Optional[str] = None
    sender_id: Optional[str] = None
    type: str
    title: str
    message: str
    action_url: Optional[str] = None
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}
