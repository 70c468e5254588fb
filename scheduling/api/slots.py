"""Bookable slot API endpoints."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session as DBSession

from auth.middleware.auth_middleware import get_current_user
from database import get_db
from shared.models.entities import User
from shared.utils.exceptions import SchedulingException
from scheduling.models.schemas import BookableSlotsResponse, BusyInterval, SlotCheckResponse, SlotWindow
from scheduling.services.slot_resolver import SlotResolver
from scheduling.utils.time_utils import day_of_week, minutes_to_time, parse_local_date, require_time_input

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/slots", tags=["slots"])


# Declared before /{tutor_id}/{date} so "busy" is not read as a tutor id
@router.get("/busy/{date}", response_model=List[BusyInterval])
def busy_intervals(
    date: str,
    tutor_id: Optional[str] = Query(None, description="Defaults to the calling tutor"),
    db: DBSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Lessons, combined sessions and breaks already occupying the date."""
    try:
        return SlotResolver(db).busy_intervals_for_date(tutor_id or current_user.id, parse_local_date(date))
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error loading busy slots for {date}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error loading busy slots: {str(e)}")


@router.get("/{tutor_id}/{date}", response_model=BookableSlotsResponse)
def bookable_slots(
    tutor_id: str,
    date: str,
    db: DBSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Availability on the date with breaks removed."""
    try:
        value = parse_local_date(date)
        windows = SlotResolver(db).bookable_windows_for_date(tutor_id, value)
        return BookableSlotsResponse(
            tutor_id=tutor_id,
            date=value.isoformat(),
            day_of_week=day_of_week(value),
            windows=[SlotWindow(start_time=w.start_time, end_time=w.end_time) for w in windows],
        )
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error resolving slots for {tutor_id} on {date}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error resolving slots: {str(e)}")


@router.get("/{tutor_id}/{date}/check", response_model=SlotCheckResponse)
def check_slot(
    tutor_id: str,
    date: str,
    start: str = Query(..., description="HH:MM, H:MM AM/PM or HHMM"),
    end: str = Query(..., description="HH:MM, H:MM AM/PM or HHMM"),
    db: DBSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Whether [start, end) fits inside one bookable window."""
    try:
        value = parse_local_date(date)
        start_minute = require_time_input(start)
        end_minute = require_time_input(end)
        available = SlotResolver(db).is_time_available(tutor_id, value, start_minute, end_minute)
        return SlotCheckResponse(
            tutor_id=tutor_id,
            date=value.isoformat(),
            start_time=minutes_to_time(start_minute),
            end_time=minutes_to_time(end_minute),
            available=available,
        )
    except SchedulingException as e:
        raise e.to_http_exception()
    except Exception as e:
        logger.error(f"Error checking slot for {tutor_id} on {date}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error checking slot: {str(e)}")
