"""Tutor break data access layer."""

from shared.models.entities import TutorBreak
from scheduling.repositories.window_repository import WindowRepository


class BreakRepository(WindowRepository):
    """CRUD operations for the tutor_breaks table."""

    model = TutorBreak
