"""Pytest configuration and shared fixtures."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import reset_settings
# Import all models to ensure they are registered with Base.metadata
from shared.models.entities import *
from auth.repositories.user_repository import UserRepository
from scheduling.repositories.lesson_repository import LessonRepository
from scheduling.repositories.lesson_request_repository import LessonRequestRepository


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings so monkeypatched env vars apply per test."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture(scope="function")
def db_session():
    """
    Create a test database session with in-memory SQLite.

    StaticPool keeps the single in-memory database visible to the worker
    threads TestClient runs sync endpoints on.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(engine)

    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(engine)


@pytest.fixture
def tutor(db_session):
    return UserRepository(db_session).create("sub-tutor-1", "tutor", "tutor@example.com", "Ms. Rivera")


@pytest.fixture
def other_tutor(db_session):
    return UserRepository(db_session).create("sub-tutor-2", "tutor", "other@example.com", "Mr. Osei")


@pytest.fixture
def parent(db_session):
    return UserRepository(db_session).create("sub-parent-1", "parent", "parent@example.com", "Sam Parker")


@pytest.fixture
def other_parent(db_session):
    return UserRepository(db_session).create("sub-parent-2", "parent", "second@example.com", "Jo Lee")


@pytest.fixture
def students(db_session, parent):
    """Three children of the same parent."""
    repo = UserRepository(db_session)
    return [repo.add_student(parent.id, name) for name in ("Ava", "Ben", "Cleo")]


@pytest.fixture
def make_lesson(db_session, tutor):
    """Factory for scheduled lessons."""
    def _make(student, scheduled_at=datetime(2024, 3, 4, 15, 0), duration_min=60, **kwargs):
        return LessonRepository(db_session).create_lesson(
            tutor_id=kwargs.pop("tutor_id", tutor.id),
            student_id=student.id,
            subject=kwargs.pop("subject", "piano"),
            scheduled_at=scheduled_at,
            duration_min=duration_min,
            **kwargs,
        )
    return _make


@pytest.fixture
def make_request(db_session, parent, tutor):
    """Factory for pending lesson requests; offset_minutes spreads created_at."""
    def _make(student, offset_minutes=0, **kwargs):
        fields = dict(
            parent_id=kwargs.pop("parent_id", parent.id),
            tutor_id=kwargs.pop("tutor_id", tutor.id),
            student_id=student.id,
            subject="piano",
            preferred_date="2024-03-11",
            preferred_time="15:00",
            preferred_duration=60,
            request_type="dropin",
        )
        fields.update(kwargs)
        row = LessonRequestRepository(db_session).create(**fields)
        row.created_at = datetime(2024, 3, 1, 9, 0) + timedelta(minutes=offset_minutes)
        db_session.commit()
        return row
    return _make
