"""User and student data access layer."""

from datetime import datetime
from typing import Optional
from uuid import uuid4
from sqlalchemy.orm import Session as DBSession
from shared.models.entities import Student, User


class UserRepository:
    """CRUD operations for the users and students tables."""

    def __init__(self, db: DBSession):
        self.db = db

    def get_by_id(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_by_cognito_sub(self, cognito_sub: str) -> Optional[User]:
        return self.db.query(User).filter(User.cognito_sub == cognito_sub).first()

    def create(self, cognito_sub: str, role: str, email: Optional[str] = None,
               name: Optional[str] = None) -> User:
        user = User(
            id=str(uuid4()),
            cognito_sub=cognito_sub,
            email=email,
            name=name,
            role=role,
            created_at=datetime.utcnow(),
            updated_at=datetime.utcnow(),
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def add_student(self, parent_id: str, name: str) -> Student:
        student = Student(
            id=str(uuid4()),
            parent_id=parent_id,
            name=name,
            created_at=datetime.utcnow(),
        )
        self.db.add(student)
        self.db.commit()
        self.db.refresh(student)
        return student

    def get_students(self, student_ids: list[str]) -> list[Student]:
        return self.db.query(Student).filter(Student.id.in_(student_ids)).all()
