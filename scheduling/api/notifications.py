"""Notification API endpoints."""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session as DBSession

from auth.middleware.auth_middleware import get_current_user, require_tutor
from database import get_db
from shared.models.entities import User
from scheduling.models.schemas import DispatchResponse, NotificationResponse
from scheduling.repositories.notification_repository import NotificationRepository
from scheduling.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationResponse])
def list_notifications(
    db: DBSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """In-app notifications for the caller, newest first. Tutors also see broadcasts."""
    repo = NotificationRepository(db)
    notifications = repo.list_for_recipient(current_user.id)
    if current_user.role == "tutor":
        notifications += repo.list_for_recipient(None)
        notifications.sort(key=lambda n: n.created_at, reverse=True)
    return notifications


@router.post("/dispatch", response_model=DispatchResponse)
def dispatch_notifications(
    db: DBSession = Depends(get_db),
    current_user: User = Depends(require_tutor),
):
    """Deliver pending outbox messages now instead of waiting for the next mutation."""
    try:
        return DispatchResponse(**NotificationDispatcher(db).dispatch_pending())
    except Exception as e:
        logger.error(f"Error dispatching notifications: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error dispatching notifications: {str(e)}")
