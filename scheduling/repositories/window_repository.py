"""Shared data access for tutor availability and break windows."""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import or_
from sqlalchemy.orm import Session as DBSession


class WindowRepository:
    """CRUD for a table shaped like tutor_availability / tutor_breaks."""

    model = None

    def __init__(self, db: DBSession):
        self.db = db

    def get_by_id(self, window_id: str):
        return self.db.query(self.model).filter(self.model.id == window_id).first()

    def list_for_tutor(
        self,
        tutor_id: str,
        day_of_week: Optional[int] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        is_recurring: Optional[bool] = None,
    ) -> list:
        """
        List windows for a tutor ordered by day then start time.

        Date bounds only restrict date-specific rows; recurring rows always pass.
        """
        model = self.model
        query = self.db.query(model).filter(model.tutor_id == tutor_id)
        if day_of_week is not None:
            query = query.filter(model.day_of_week == day_of_week)
        if is_recurring is True:
            query = query.filter(model.day_of_week.isnot(None))
        elif is_recurring is False:
            query = query.filter(model.specific_date.isnot(None))
        if start_date:
            query = query.filter(or_(model.specific_date >= start_date, model.day_of_week.isnot(None)))
        if end_date:
            query = query.filter(or_(model.specific_date <= end_date, model.day_of_week.isnot(None)))
        rows = query.all()
        return sorted(rows, key=lambda r: (
            r.day_of_week if r.day_of_week is not None else 7,
            r.specific_date or "",
            r.start_time,
        ))

    def list_for_day(self, tutor_id: str, day_of_week: int) -> list:
        """Recurring windows on one weekday, earliest first."""
        return (
            self.db.query(self.model)
            .filter(self.model.tutor_id == tutor_id, self.model.day_of_week == day_of_week)
            .order_by(self.model.start_time.asc())
            .all()
        )

    def list_for_date(self, tutor_id: str, date_str: str) -> list:
        """Date-specific windows on one calendar date, earliest first."""
        return (
            self.db.query(self.model)
            .filter(self.model.tutor_id == tutor_id, self.model.specific_date == date_str)
            .order_by(self.model.start_time.asc())
            .all()
        )

    def create(
        self,
        tutor_id: str,
        start_time: str,
        end_time: str,
        day_of_week: Optional[int] = None,
        specific_date: Optional[str] = None,
        notes: Optional[str] = None,
    ):
        row = self.model(
            id=str(uuid4()),
            tutor_id=tutor_id,
            day_of_week=day_of_week,
            specific_date=specific_date,
            start_time=start_time,
            end_time=end_time,
            notes=notes,
            created_at=datetime.utcnow(),
            updated_at=datetime.utcnow(),
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def update(self, window_id: str, **fields):
        row = self.get_by_id(window_id)
        if not row:
            return None
        for key, value in fields.items():
            if hasattr(row, key):
                setattr(row, key, value)
        row.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(row)
        return row

    def delete(self, window_id: str) -> bool:
        row = self.get_by_id(window_id)
        if not row:
            return False
        self.db.delete(row)
        self.db.commit()
        return True
