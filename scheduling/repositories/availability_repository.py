"""Tutor availability data access layer."""

from shared.models.entities import TutorAvailability
from scheduling.repositories.window_repository import WindowRepository


class AvailabilityRepository(WindowRepository):
    """CRUD operations for the tutor_availability table."""

    model = TutorAvailability
