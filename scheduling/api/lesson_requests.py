"""Lesson request API endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session as DBSession

from auth.middleware.auth_middleware import get_current_user, require_parent, require_tutor
from database import get_db
from shared.models.entities import User
from shared.utils.exceptions import PartialGroupFailureError, SchedulingException
from scheduling.models.requests import ApprovalOutcome, GroupedRequestView, LessonRequestVariant, RequestStatus
from scheduling.models.schemas import (
    ApproveRequestsBody,
    LessonRequestCreate,
    PendingCountResponse,
    RejectRequestsBody,
)
from scheduling.services.approval_service import ApprovalService
from scheduling.services.background_task_runner import dispatch_outbox, run_in_background
from scheduling.services.request_service import RequestService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/lesson-requests", tags=["lesson-requests"])


@router.post("", response_model=List[LessonRequestVariant], status_code=201)
def create_request(
    request: LessonRequestCreate,
    db: DBSession = Depends(get_db),
    current_user: User = Depends(require_parent),
):
    """Submit a reschedule or drop-in request for one or more students."""
    try:
        created = RequestService(db).create(current_user, request)
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error creating lesson request: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error creating lesson request: {str(e)}")
    run_in_background(dispatch_outbox)
    return created


@router.get("", response_model=List[LessonRequestVariant])
def list_requests(
    status: Optional[RequestStatus] = None,
    db: DBSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Tutors see requests addressed to them; parents see their own."""
    try:
        service = RequestService(db)
        if current_user.role == "tutor":
            return service.list_for_tutor(current_user.id, status)
        return service.list_for_parent(current_user.id, status)
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error listing lesson requests: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing lesson requests: {str(e)}")


@router.get("/grouped", response_model=List[GroupedRequestView])
def grouped_requests(
    status: Optional[RequestStatus] = None,
    db: DBSession = Depends(get_db),
    current_user: User = Depends(require_tutor),
):
    """Requests folded into combined sessions and standalone requests, newest first."""
    try:
        return RequestService(db).grouped_for_tutor(current_user.id, status)
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error grouping lesson requests: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error grouping lesson requests: {str(e)}")


@router.get("/pending-count", response_model=PendingCountResponse)
def pending_count(
    db: DBSession = Depends(get_db),
    current_user: User = Depends(require_tutor),
):
    try:
        return PendingCountResponse(count=RequestService(db).pending_count(current_user.id))
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error counting pending requests: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error counting pending requests: {str(e)}")


@router.delete("/{request_id}")
def delete_request(
    request_id: str,
    db: DBSession = Depends(get_db),
    current_user: User = Depends(require_parent),
):
    """Withdraw a pending request."""
    try:
        RequestService(db).delete(request_id, current_user.id)
        return {"status": "deleted", "id": request_id}
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error deleting lesson request {request_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error deleting lesson request: {str(e)}")


@router.post("/approve", response_model=ApprovalOutcome)
def approve_requests(
    request: ApproveRequestsBody,
    db: DBSession = Depends(get_db),
    current_user: User = Depends(require_tutor),
):
    """
    Approve a group of requests.

    request_ids must be one standalone request or every member of one
    group; anything else is 422. On partial failure the response is 500 with the failed request ids and
    the per-member outcome; members that succeeded stay approved.
    """
    try:
        outcome = ApprovalService(db).approve(
            current_user.id,
            request.request_ids,
            tutor_response=request.tutor_response,
            should_create_lesson=request.should_create_lesson,
        )
    except PartialGroupFailureError as e:
        run_in_background(dispatch_outbox)
        raise e.to_http_exception()
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error approving requests {request.request_ids}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error approving requests: {str(e)}")
    run_in_background(dispatch_outbox)
    return outcome


@router.post("/reject", response_model=ApprovalOutcome)
def reject_requests(
    request: RejectRequestsBody,
    db: DBSession = Depends(get_db),
    current_user: User = Depends(require_tutor),
):
    """Reject a group of requests with an optional reason for the parent."""
    try:
        outcome = ApprovalService(db).reject(current_user.id, request.request_ids, reason=request.reason)
    except PartialGroupFailureError as e:
        run_in_background(dispatch_outbox)
        raise e.to_http_exception()
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error rejecting requests {request.request_ids}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error rejecting requests: {str(e)}")
    run_in_background(dispatch_outbox)
    return outcome
