"""SQLAlchemy ORM database models."""
from datetime import datetime
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import relationship

Base = declarative_base()


class User(Base):
    """User table - tutors and parents linked to Cognito."""
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    cognito_sub = Column(String, unique=True, nullable=False)
    email = Column(String, unique=True, nullable=True)
    name = Column(String, nullable=True)
    role = Column(String, nullable=False, default="parent")  # 'tutor', 'parent'
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    students = relationship("Student", back_populates="parent")

    __table_args__ = (
        Index("idx_cognito_sub", "cognito_sub"),
        CheckConstraint("role IN ('tutor', 'parent')", name="valid_user_role"),
    )


class Student(Base):
    """Student table - children enrolled by a parent."""
    __tablename__ = "students"

    id = Column(String, primary_key=True)
    parent_id = Column(String, ForeignKey("users.id"), nullable=False)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    parent = relationship("User", back_populates="students")

    __table_args__ = (
        Index("idx_student_parent", "parent_id"),
    )


class TutorAvailability(Base):
    """Bookable time windows - recurring weekly (day_of_week) or one-off (specific_date)."""
    __tablename__ = "tutor_availability"

    id = Column(String, primary_key=True)
    tutor_id = Column(String, ForeignKey("users.id"), nullable=False)
    day_of_week = Column(Integer, nullable=True)  # 0=Sunday ... 6=Saturday
    specific_date = Column(String, nullable=True)  # YYYY-MM-DD
    start_time = Column(String, nullable=False)  # HH:MM
    end_time = Column(String, nullable=False)  # HH:MM
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_recurring(self) -> bool:
        return self.day_of_week is not None

    __table_args__ = (
        Index("idx_availability_tutor_day", "tutor_id", "day_of_week"),
        Index("idx_availability_tutor_date", "tutor_id", "specific_date"),
        CheckConstraint("end_time > start_time", name="valid_availability_range"),
        CheckConstraint(
            "(day_of_week IS NULL) <> (specific_date IS NULL)",
            name="availability_day_xor_date",
        ),
    )


class TutorBreak(Base):
    """Break carve-outs inside availability - same shape as TutorAvailability."""
    __tablename__ = "tutor_breaks"

    id = Column(String, primary_key=True)
    tutor_id = Column(String, ForeignKey("users.id"), nullable=False)
    day_of_week = Column(Integer, nullable=True)
    specific_date = Column(String, nullable=True)
    start_time = Column(String, nullable=False)
    end_time = Column(String, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def is_recurring(self) -> bool:
        return self.day_of_week is not None

    __table_args__ = (
        Index("idx_break_tutor_day", "tutor_id", "day_of_week"),
        Index("idx_break_tutor_date", "tutor_id", "specific_date"),
        CheckConstraint("end_time > start_time", name="valid_break_range"),
        CheckConstraint(
            "(day_of_week IS NULL) <> (specific_date IS NULL)",
            name="break_day_xor_date",
        ),
    )


class LessonSession(Base):
    """Shared grouping for a combined multi-student session."""
    __tablename__ = "lesson_sessions"

    id = Column(String, primary_key=True)
    tutor_id = Column(String, ForeignKey("users.id"), nullable=False)
    scheduled_at = Column(DateTime, nullable=False)  # local wall-clock time
    duration_min = Column(Integer, nullable=False, default=60)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    lessons = relationship("ScheduledLesson", back_populates="session")


class ScheduledLesson(Base):
    """A concrete lesson on the calendar."""
    __tablename__ = "scheduled_lessons"

    id = Column(String, primary_key=True)
    tutor_id = Column(String, ForeignKey("users.id"), nullable=False)
    student_id = Column(String, ForeignKey("students.id"), nullable=False)
    subject = Column(String, nullable=False)
    scheduled_at = Column(DateTime, nullable=False)  # local wall-clock time
    duration_min = Column(Integer, nullable=False, default=30)
    status = Column(String, nullable=False, default="scheduled")  # scheduled, completed, cancelled
    notes = Column(Text, nullable=True)
    session_id = Column(String, ForeignKey("lesson_sessions.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    session = relationship("LessonSession", back_populates="lessons")
    student = relationship("Student")

    __table_args__ = (
        Index("idx_lesson_scheduled_at", "scheduled_at"),
        Index("idx_lesson_session", "session_id"),
        CheckConstraint("duration_min > 0", name="positive_lesson_duration"),
    )


class LessonRequest(Base):
    """Parent-submitted reschedule or drop-in request."""
    __tablename__ = "lesson_requests"

    id = Column(String, primary_key=True)
    parent_id = Column(String, ForeignKey("users.id"), nullable=False)
    tutor_id = Column(String, ForeignKey("users.id"), nullable=False)
    student_id = Column(String, ForeignKey("students.id"), nullable=False)
    subject = Column(String, nullable=False)
    preferred_date = Column(String, nullable=False)  # YYYY-MM-DD
    preferred_time = Column(String, nullable=True)  # HH:MM
    preferred_duration = Column(Integer, nullable=False, default=60)
    notes = Column(Text, nullable=True)
    request_type = Column(String, nullable=False, default="reschedule")  # reschedule, dropin
    original_lesson_id = Column(String, nullable=True)  # not a FK: the lesson is deleted on approval
    request_group_id = Column(String, nullable=True)
    status = Column(String, nullable=False, default="pending")  # pending, approved, rejected, scheduled
    tutor_response = Column(Text, nullable=True)
    scheduled_lesson_id = Column(String, ForeignKey("scheduled_lessons.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student = relationship("Student")

    __table_args__ = (
        Index("idx_request_tutor_status", "tutor_id", "status"),
        Index("idx_request_parent", "parent_id"),
        Index("idx_request_group", "request_group_id"),
        CheckConstraint("request_type IN ('reschedule', 'dropin')", name="valid_request_type"),
    )


class Notification(Base):
    """In-app notification shown in the notification bell."""
    __tablename__ = "notifications"

    id = Column(String, primary_key=True)
    recipient_id = Column(String, ForeignKey("users.id"), nullable=True)  # NULL = all tutors
    sender_id = Column(String, ForeignKey("users.id"), nullable=True)
    type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    data_json = Column(Text, nullable=True)
    action_url = Column(String, nullable=True)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_notification_recipient", "recipient_id"),
    )


class OutboxMessage(Base):
    """Queued side effect (email or in-app notification) awaiting delivery."""
    __tablename__ = "notification_outbox"

    id = Column(String, primary_key=True)
    kind = Column(String, nullable=False)  # approval_email, rejection_email, request_email, in_app
    payload_json = Column(Text, nullable=False)
    status = Column(String, nullable=False, default="pending")  # pending, sending, sent, failed
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    claimed_at = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_outbox_status", "status", "created_at"),
    )
