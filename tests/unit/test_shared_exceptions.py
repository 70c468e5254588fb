"""Unit tests for shared/utils/exceptions.py - custom exception hierarchy."""
import pytest
from fastapi import HTTPException

from shared.utils.exceptions import (
    AvailabilityHasBreaksError,
    BreakOutsideAvailabilityError,
    DatabaseException,
    InvalidRequestError,
    InvalidStateError,
    InvalidTimeFormatError,
    InvalidWindowError,
    NotFoundError,
    NotificationDeliveryFailure,
    PartialGroupFailureError,
    PermissionDeniedError,
    SchedulingException,
    SlotUnavailableError,
)


# ---------------------------------------------------------------------------
# SchedulingException - base class
# ---------------------------------------------------------------------------

class TestSchedulingException:
    """Tests for the base SchedulingException."""

    def test_is_exception_subclass(self):
        assert issubclass(SchedulingException, Exception)

    def test_default_http_mapping(self):
        http_exc = SchedulingException("something went wrong").to_http_exception()
        assert isinstance(http_exc, HTTPException)
        assert http_exc.status_code == 400
        assert http_exc.detail == "something went wrong"

    @pytest.mark.parametrize("exc_class", [
        InvalidWindowError,
        BreakOutsideAvailabilityError,
        InvalidTimeFormatError,
        InvalidRequestError,
        InvalidStateError,
        AvailabilityHasBreaksError,
        SlotUnavailableError,
        PartialGroupFailureError,
        NotFoundError,
        PermissionDeniedError,
        DatabaseException,
    ])
    def test_hierarchy(self, exc_class):
        assert issubclass(exc_class, SchedulingException)

    def test_delivery_failure_outside_hierarchy(self):
        assert not issubclass(NotificationDeliveryFailure, SchedulingException)


# ---------------------------------------------------------------------------
# HTTP status mapping
# ---------------------------------------------------------------------------

class TestHttpMapping:
    """Each error maps to one status code."""

    @pytest.mark.parametrize("exc, status_code", [
        (InvalidWindowError("end before start"), 422),
        (BreakOutsideAvailabilityError("08:00", "09:00", "Monday"), 422),
        (InvalidTimeFormatError("noon-ish"), 422),
        (InvalidRequestError("bad"), 422),
        (InvalidStateError("r1", "rejected", "approve"), 409),
        (AvailabilityHasBreaksError("a1", ["b1"]), 409),
        (SlotUnavailableError("2024-03-11", "15:00", "16:00"), 409),
        (PartialGroupFailureError("approve", ["r2"]), 500),
        (NotFoundError("Lesson request", "r1"), 404),
        (PermissionDeniedError("nope"), 403),
        (DatabaseException("insert", RuntimeError("x")), 500),
    ])
    def test_status(self, exc, status_code):
        assert exc.to_http_exception().status_code == status_code


# ---------------------------------------------------------------------------
# Messages and attributes
# ---------------------------------------------------------------------------

class TestDetails:

    def test_invalid_window_message(self):
        http_exc = InvalidWindowError("end before start").to_http_exception()
        assert http_exc.detail == "Invalid time window: end before start"

    def test_break_outside_names_day(self):
        exc = BreakOutsideAvailabilityError("08:00", "09:00", "Monday")
        assert "08:00-09:00" in str(exc)
        assert "Monday" in str(exc)

    def test_invalid_state_attributes(self):
        exc = InvalidStateError("r1", "scheduled", "reject")
        assert (exc.request_id, exc.current_status, exc.operation) == ("r1", "scheduled", "reject")
        assert "scheduled" in str(exc)

    def test_availability_has_breaks_detail_lists_breaks(self):
        detail = AvailabilityHasBreaksError("a1", ["b1", "b2"]).to_http_exception().detail
        assert detail["break_ids"] == ["b1", "b2"]
        assert "2 break(s)" in detail["message"]

    def test_partial_failure_without_outcome(self):
        detail = PartialGroupFailureError("reject", ["r2", "r3"]).to_http_exception().detail
        assert detail["failed_request_ids"] == ["r2", "r3"]
        assert "outcome" not in detail

    def test_not_found_message(self):
        exc = NotFoundError("Tutor", "t9")
        assert str(exc) == "Tutor t9 not found"

    def test_database_exception_hides_original(self):
        exc = DatabaseException("commit", RuntimeError("password=hunter2"))
        assert exc.original_error.args == ("password=hunter2",)
        assert exc.to_http_exception().detail == "Database operation failed"

    def test_delivery_failure_message(self):
        exc = NotificationDeliveryFailure("approval_email", RuntimeError("timeout"))
        assert exc.kind == "approval_email"
        assert "timeout" in str(exc)
