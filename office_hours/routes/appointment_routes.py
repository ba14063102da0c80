import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from office_hours.auth.dependencies import get_current_user, require_role
from office_hours.core.errors import storage_failure
from office_hours.database import get_db
from office_hours.models.appointment import (
    APPOINTMENT_STATUSES,
    CANCELLED_STATUS,
    COMPLETED_STATUS,
    SCHEDULED_STATUS,
    Appointment,
)
from office_hours.models.availability import Availability
from office_hours.models.user import PROFESSOR_ROLE, STUDENT_ROLE, User
from office_hours.schemas import (
    CamelModel,
    MessageResponse,
    ProfessorAppointmentResponse,
    StudentAppointmentResponse,
)

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

MAX_APPOINTMENT_NOTES_LENGTH = 600


class BookAppointmentRequest(CamelModel):
    availability_id: int
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

        return normalized


def validate_status_filter(appointment_status: str | None) -> str | None:
    if appointment_status is None:
        return None

    normalized = appointment_status.strip().lower()
    if normalized not in APPOINTMENT_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Invalid appointment status.',
        )
    return normalized


def claim_slot(db: Session, availability_id: int) -> bool:
    """Mark a slot booked only if it is still free.

    Returns ``False`` when another booking got there first. The caller owns the
    transaction.
    """
    claimed = db.query(Availability).filter(
        Availability.id == availability_id,
        Availability.is_booked.is_(False),
    ).update({Availability.is_booked: True}, synchronize_session=False)
    return claimed == 1


def release_slot(db: Session, availability_id: int | None) -> bool:
    if availability_id is None:
        return False

    released = db.query(Availability).filter(
        Availability.id == availability_id,
    ).update({Availability.is_booked: False}, synchronize_session=False)
    return released == 1


def transition_status(db: Session, appointment_id: int, from_status: str, to_status: str) -> bool:
    """Move an appointment between statuses only if it is still in ``from_status``."""
    changed = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.status == from_status,
    ).update({Appointment.status: to_status}, synchronize_session=False)
    return changed == 1


def current_status(db: Session, appointment_id: int) -> str | None:
    return db.query(Appointment.status).filter(Appointment.id == appointment_id).scalar()


def query_appointments_in_slot_order(db: Session, *relations):
    # Outer join keeps appointments whose slot row has been removed.
    return db.query(Appointment).outerjoin(
        Availability, Appointment.availability_id == Availability.id,
    ).options(
        joinedload(Appointment.availability),
        *[joinedload(relation) for relation in relations],
    ).order_by(Availability.start_time.asc(), Appointment.id.asc())


def load_appointment(db: Session, appointment_id: int, *relations) -> Appointment | None:
    return db.query(Appointment).options(
        joinedload(Appointment.availability),
        *[joinedload(relation) for relation in relations],
    ).filter(Appointment.id == appointment_id).first()


@router.post('', response_model=StudentAppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    data: BookAppointmentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_role(current_user, STUDENT_ROLE, 'Only students can book appointments')

    try:
        slot = db.query(Availability).filter(Availability.id == data.availability_id).first()
        if not slot:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Availability slot not found',
            )

        if slot.is_booked:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This slot is already booked',
            )

        if not claim_slot(db, slot.id):
            db.rollback()
            logger.warning('Student %s lost the race for availability %s', current_user.id, slot.id)
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='This slot is already booked',
            )

        appointment = Appointment(
            student_id=current_user.id,
            professor_id=slot.professor_id,
            availability_id=slot.id,
            status=SCHEDULED_STATUS,
            notes=data.notes,
        )
        db.add(appointment)
        db.commit()

        logger.info(
            'Student %s booked availability %s as appointment %s',
            current_user.id,
            slot.id,
            appointment.id,
        )
        return load_appointment(db, appointment.id, Appointment.professor)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error booking appointment')
        raise storage_failure('Error booking appointment') from exc


@router.get('/student', response_model=list[StudentAppointmentResponse])
def list_student_appointments(
    appointment_status: str | None = Query(default=None, alias='status'),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_role(current_user, STUDENT_ROLE, 'Only students can view their appointments')
    status_filter = validate_status_filter(appointment_status)

    try:
        appointments = query_appointments_in_slot_order(db, Appointment.professor).filter(
            Appointment.student_id == current_user.id,
        )
        if status_filter:
            appointments = appointments.filter(Appointment.status == status_filter)
        return appointments.all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching appointments for student %s', current_user.id)
        raise storage_failure('Error fetching appointments') from exc


@router.get('/professor', response_model=list[ProfessorAppointmentResponse])
def list_professor_appointments(
    appointment_status: str | None = Query(default=None, alias='status'),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_role(current_user, PROFESSOR_ROLE, 'Only professors can view their appointments')
    status_filter = validate_status_filter(appointment_status)

    try:
        appointments = query_appointments_in_slot_order(db, Appointment.student).filter(
            Appointment.professor_id == current_user.id,
        )
        if status_filter:
            appointments = appointments.filter(Appointment.status == status_filter)
        return appointments.all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching appointments for professor %s', current_user.id)
        raise storage_failure('Error fetching appointments') from exc


@router.put('/{appointment_id}/cancel', response_model=MessageResponse)
def cancel_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if not appointment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Appointment not found',
            )

        if current_user.id not in (appointment.student_id, appointment.professor_id):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Not authorized to cancel this appointment',
            )

        if not transition_status(db, appointment_id, SCHEDULED_STATUS, CANCELLED_STATUS):
            db.rollback()
            if current_status(db, appointment_id) == COMPLETED_STATUS:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail='Completed appointments cannot be cancelled',
                )
            return MessageResponse(message='Appointment cancelled successfully')

        # Only the request that moved the appointment out of scheduled frees the slot.
        if not release_slot(db, appointment.availability_id):
            logger.warning(
                'Appointment %s cancelled but its availability %s no longer exists',
                appointment_id,
                appointment.availability_id,
            )
        db.commit()

        logger.info('User %s cancelled appointment %s', current_user.id, appointment_id)
        return MessageResponse(message='Appointment cancelled successfully')
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error cancelling appointment %s', appointment_id)
        raise storage_failure('Error cancelling appointment') from exc


@router.put('/{appointment_id}/complete', response_model=ProfessorAppointmentResponse)
def complete_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if not appointment:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Appointment not found',
            )

        if current_user.role != PROFESSOR_ROLE or appointment.professor_id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the professor of this appointment can complete it',
            )

        if not transition_status(db, appointment_id, SCHEDULED_STATUS, COMPLETED_STATUS):
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'Cannot complete a {current_status(db, appointment_id)} appointment',
            )
        db.commit()

        logger.info('Professor %s completed appointment %s', current_user.id, appointment_id)
        return load_appointment(db, appointment_id, Appointment.student)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error completing appointment %s', appointment_id)
        raise storage_failure('Error completing appointment') from exc
