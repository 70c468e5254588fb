"""Tutor availability API endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session as DBSession

from auth.middleware.auth_middleware import get_current_user, require_tutor
from database import get_db
from shared.models.entities import User
from shared.utils.exceptions import SchedulingException
from scheduling.models.schemas import WeeklyWindowsResponse, WindowInput, WindowResponse
from scheduling.services.availability_service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("", response_model=List[WindowResponse])
def list_availability(
    tutor_id: Optional[str] = Query(None, description="Defaults to the calling tutor"),
    day_of_week: Optional[int] = Query(None, ge=0, le=6),
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    is_recurring: Optional[bool] = None,
    db: DBSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List availability windows, ordered by day then start time."""
    try:
        service = AvailabilityService(db)
        return service.list_for_tutor(
            tutor_id or current_user.id, day_of_week, start_date, end_date, is_recurring
        )
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error listing availability: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing availability: {str(e)}")


@router.get("/weekly", response_model=WeeklyWindowsResponse)
def weekly_availability(
    tutor_id: Optional[str] = Query(None, description="Defaults to the calling tutor"),
    db: DBSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Recurring availability for every day of the week (0=Sunday)."""
    tutor_id = tutor_id or current_user.id
    try:
        service = AvailabilityService(db)
        return WeeklyWindowsResponse(tutor_id=tutor_id, days=service.list_by_day(tutor_id))
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error loading weekly availability: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error loading weekly availability: {str(e)}")


@router.post("", response_model=WindowResponse, status_code=201)
def create_availability(
    request: WindowInput,
    db: DBSession = Depends(get_db),
    current_user: User = Depends(require_tutor),
):
    """Add an availability window."""
    try:
        service = AvailabilityService(db)
        return service.upsert(
            current_user.id,
            request.start_time,
            request.end_time,
            day_of_week=request.day_of_week,
            specific_date=request.specific_date,
            notes=request.notes,
        )
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error creating availability: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error creating availability: {str(e)}")


@router.put("/{window_id}", response_model=WindowResponse)
def update_availability(
    window_id: str,
    request: WindowInput,
    db: DBSession = Depends(get_db),
    current_user: User = Depends(require_tutor),
):
    """Replace an availability window. Refused while a break would be left outside availability."""
    try:
        service = AvailabilityService(db)
        return service.upsert(
            current_user.id,
            request.start_time,
            request.end_time,
            day_of_week=request.day_of_week,
            specific_date=request.specific_date,
            notes=request.notes,
            window_id=window_id,
        )
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error updating availability {window_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating availability: {str(e)}")


@router.delete("/{window_id}")
def delete_availability(
    window_id: str,
    db: DBSession = Depends(get_db),
    current_user: User = Depends(require_tutor),
):
    """Remove an availability window. Refused while breaks depend on it."""
    try:
        AvailabilityService(db).remove(current_user.id, window_id)
        return {"status": "deleted", "id": window_id}
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error deleting availability {window_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error deleting availability: {str(e)}")
