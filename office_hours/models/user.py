"""User model definitions."""

from sqlalchemy import Column, Integer, String
from office_hours.database import Base

STUDENT_ROLE = "student"
PROFESSOR_ROLE = "professor"


class User(Base):
    """Represents a student or professor account."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False, default="")
    role = Column(String, nullable=False)  # student/professor
    department = Column(String)
