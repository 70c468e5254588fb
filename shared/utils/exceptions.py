"""Custom exception hierarchy for better error handling.

Exception Hierarchy:
    SchedulingException (base)
    ├── InvalidWindowError
    ├── BreakOutsideAvailabilityError
    ├── InvalidTimeFormatError
    ├── InvalidRequestError
    ├── InvalidStateError
    ├── AvailabilityHasBreaksError
    ├── SlotUnavailableError
    ├── PartialGroupFailureError
    ├── NotFoundError
    ├── PermissionDeniedError
    └── DatabaseException

NotificationDeliveryFailure sits outside the hierarchy: it is
logged by the notification layer and never surfaced to API callers.
"""
from typing import Any, Optional

from fastapi import HTTPException, status


class SchedulingException(Exception):
    """Base exception for all application errors."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(self)
        )


class InvalidWindowError(SchedulingException):
    """Raised when a time window is malformed."""

    def __init__(self, message: str):
        super().__init__(message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=422,  # unprocessable content
            detail=f"Invalid time window: {self}"
        )


class BreakOutsideAvailabilityError(SchedulingException):
    """Raised when a break is not contained in any same-day availability window."""

    def __init__(self, start_time: str, end_time: str, day_label: str):
        self.start_time = start_time
        self.end_time = end_time
        self.day_label = day_label
        super().__init__(
            f"Break {start_time}-{end_time} on {day_label} is not within any availability window"
        )

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=422,  # unprocessable content
            detail=str(self)
        )


class InvalidTimeFormatError(SchedulingException):
    """Raised when free-text time input cannot be parsed."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid time '{value}'. Use HH:MM, H:MM AM/PM or HHMM")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=422,  # unprocessable content
            detail=str(self)
        )


class InvalidRequestError(SchedulingException):
    """Raised when a lesson request is internally inconsistent."""

    def __init__(self, message: str):
        super().__init__(message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=422,  # unprocessable content
            detail=str(self)
        )


class InvalidStateError(SchedulingException):
    """Raised when an operation is attempted on a request in the wrong status."""

    def __init__(self, request_id: str, current_status: str, operation: str):
        self.request_id = request_id
        self.current_status = current_status
        self.operation = operation
        super().__init__(f"Cannot {operation} request {request_id} in '{current_status}' state")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(self)
        )


class AvailabilityHasBreaksError(SchedulingException):
    """Raised when removing or shrinking availability would orphan breaks."""

    def __init__(self, availability_id: str, break_ids: list[str]):
        self.availability_id = availability_id
        self.break_ids = break_ids
        super().__init__(
            f"Availability {availability_id} still contains {len(break_ids)} break(s); "
            "remove or move them first"
        )

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(self), "break_ids": self.break_ids}
        )


class SlotUnavailableError(SchedulingException):
    """Raised when a requested lesson time is outside the tutor's bookable windows."""

    def __init__(self, date_str: str, start_time: str, end_time: str):
        self.date_str = date_str
        self.start_time = start_time
        self.end_time = end_time
        super().__init__(f"Tutor is not available on {date_str} from {start_time} to {end_time}")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(self)
        )


class PartialGroupFailureError(SchedulingException):
    """Raised when some members of an approve/reject call failed while others succeeded."""

    def __init__(self, operation: str, failed_ids: list[str], outcome: Optional[Any] = None):
        self.operation = operation
        self.failed_ids = failed_ids
        self.outcome = outcome
        super().__init__(f"{operation} failed for {len(failed_ids)} request(s): {', '.join(failed_ids)}")

    def to_http_exception(self) -> HTTPException:
        detail = {"message": str(self), "failed_request_ids": self.failed_ids}
        if self.outcome is not None and hasattr(self.outcome, "model_dump"):
            detail["outcome"] = self.outcome.model_dump(mode="json")
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail
        )


class NotFoundError(SchedulingException):
    """Raised when a referenced record does not exist."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(self)
        )


class PermissionDeniedError(SchedulingException):
    """Raised when the current user may not act on a record."""

    def __init__(self, message: str):
        super().__init__(message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=str(self)
        )


class DatabaseException(SchedulingException):
    """Raised when database operations fail."""

    def __init__(self, operation: str, original_error: Exception):
        self.operation = operation
        self.original_error = original_error
        super().__init__(f"Database {operation} failed: {str(original_error)}")

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database operation failed"
        )


class NotificationDeliveryFailure(Exception):
    """Raised inside the notification layer when a best-effort side effect fails."""

    def __init__(self, kind: str, original_error: Exception):
        self.kind = kind
        self.original_error = original_error
        super().__init__(f"Notification '{kind}' delivery failed: {original_error}")
