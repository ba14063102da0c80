"""Response models shared by the availability and appointment routers."""

from datetime import datetime, timezone

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input and serializes camelCase."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class MessageResponse(BaseModel):
    message: str


class UserPublicResponse(CamelModel):
    id: int
    name: str
    email: str
    department: str | None = None


class AvailabilityResponse(CamelModel):
    id: int
    professor_id: int
    start_time: datetime
    end_time: datetime
    is_booked: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None
    professor: UserPublicResponse | None = None


class AppointmentResponse(CamelModel):
    id: int
    student_id: int
    professor_id: int
    availability_id: int | None = None
    status: str
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    availability: AvailabilityResponse | None = None


class StudentAppointmentResponse(AppointmentResponse):
    professor: UserPublicResponse | None = None


class ProfessorAppointmentResponse(AppointmentResponse):
    student: UserPublicResponse | None = None


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
