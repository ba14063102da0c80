"""Availability model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, func
from sqlalchemy.orm import relationship

from office_hours.database import Base
from office_hours.models.user import User


class Availability(Base):
    """Represents a time slot a professor offers for booking."""
    __tablename__ = "availability"

    id = Column(Integer, primary_key=True)
    professor_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    is_booked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    professor = relationship(User, lazy="joined")
