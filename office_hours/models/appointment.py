"""Appointment model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.orm import relationship

from office_hours.database import Base
from office_hours.models.availability import Availability
from office_hours.models.user import User

SCHEDULED_STATUS = "scheduled"
CANCELLED_STATUS = "cancelled"
COMPLETED_STATUS = "completed"
APPOINTMENT_STATUSES = (SCHEDULED_STATUS, CANCELLED_STATUS, COMPLETED_STATUS)


class Appointment(Base):
    """Represents a student's booking of one availability slot."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    professor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    availability_id = Column(Integer, ForeignKey("availability.id", ondelete="SET NULL"))
    status = Column(String, nullable=False, default=SCHEDULED_STATUS)
    notes = Column(String)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    student = relationship(User, foreign_keys=[student_id])
    professor = relationship(User, foreign_keys=[professor_id])
    availability = relationship(Availability)
