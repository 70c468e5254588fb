"""Tutor break API endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session as DBSession

from auth.middleware.auth_middleware import get_current_user, require_tutor
from database import get_db
from shared.models.entities import User
from shared.utils.exceptions import SchedulingException
from scheduling.models.schemas import (
    BreakSuggestionResponse,
    WeeklyWindowsResponse,
    WindowInput,
    WindowResponse,
)
from scheduling.services.break_service import BreakService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/breaks", tags=["breaks"])


@router.get("", response_model=List[WindowResponse])
def list_breaks(
    tutor_id: Optional[str] = Query(None, description="Defaults to the calling tutor"),
    day_of_week: Optional[int] = Query(None, ge=0, le=6),
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    is_recurring: Optional[bool] = None,
    db: DBSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        service = BreakService(db)
        return service.list_for_tutor(
            tutor_id or current_user.id, day_of_week, start_date, end_date, is_recurring
        )
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error listing breaks: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error listing breaks: {str(e)}")


@router.get("/weekly", response_model=WeeklyWindowsResponse)
def weekly_breaks(
    tutor_id: Optional[str] = Query(None, description="Defaults to the calling tutor"),
    db: DBSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    tutor_id = tutor_id or current_user.id
    try:
        return WeeklyWindowsResponse(tutor_id=tutor_id, days=BreakService(db).list_by_day(tutor_id))
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error loading weekly breaks: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error loading weekly breaks: {str(e)}")


@router.get("/suggestion", response_model=BreakSuggestionResponse)
def suggest_break(
    day_of_week: int = Query(..., ge=0, le=6),
    db: DBSession = Depends(get_db),
    current_user: User = Depends(require_tutor),
):
    """Default break for the form: centered in the day's first availability window."""
    try:
        window = BreakService(db).suggest_default_break(current_user.id, day_of_week)
        if window is None:
            return BreakSuggestionResponse(day_of_week=day_of_week)
        return BreakSuggestionResponse(
            day_of_week=day_of_week,
            start_time=window.start_time,
            end_time=window.end_time,
        )
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error suggesting break: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error suggesting break: {str(e)}")


@router.post("", response_model=WindowResponse, status_code=201)
def create_break(
    request: WindowInput,
    db: DBSession = Depends(get_db),
    current_user: User = Depends(require_tutor),
):
    """Add a break. It must sit inside an availability window on the same day."""
    try:
        return BreakService(db).upsert(
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
        logger.error(f"Error creating break: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error creating break: {str(e)}")


@router.put("/{break_id}", response_model=WindowResponse)
def update_break(
    break_id: str,
    request: WindowInput,
    db: DBSession = Depends(get_db),
    current_user: User = Depends(require_tutor),
):
    try:
        return BreakService(db).upsert(
            current_user.id,
            request.start_time,
            request.end_time,
            day_of_week=request.day_of_week,
            specific_date=request.specific_date,
            notes=request.notes,
            break_id=break_id,
        )
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error updating break {break_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error updating break: {str(e)}")


@router.delete("/{break_id}")
def delete_break(
    break_id: str,
    db: DBSession = Depends(get_db),
    current_user: User = Depends(require_tutor),
):
    try:
        BreakService(db).remove(current_user.id, break_id)
        return {"status": "deleted", "id": break_id}
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error deleting break {break_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error deleting break: {str(e)}")
