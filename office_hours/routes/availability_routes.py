import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from office_hours.auth.dependencies import get_current_user, require_role
from office_hours.core.errors import storage_failure
from office_hours.database import get_db
from office_hours.models.availability import Availability
from office_hours.models.user import PROFESSOR_ROLE, User
from office_hours.schemas import AvailabilityResponse, CamelModel, MessageResponse, to_naive_utc

router = APIRouter(tags=['availability'])

logger = logging.getLogger(__name__)


class CreateSlotRequest(CamelModel):
    start_time: datetime
    end_time: datetime

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_timezone(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    @model_validator(mode='after')
    def validate_time_range(self) -> 'CreateSlotRequest':
        if self.end_time <= self.start_time:
            raise ValueError('End time must be after start time.')
        return self


def query_open_slots(db: Session):
    return db.query(Availability).filter(
        Availability.is_booked.is_(False),
    ).order_by(Availability.start_time.asc(), Availability.id.asc())


@router.get('', response_model=list[AvailabilityResponse])
def list_open_slots(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return query_open_slots(db).all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching availabilities')
        raise storage_failure('Error fetching availabilities') from exc


@router.get('/professor', response_model=list[AvailabilityResponse])
def list_own_slots(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_role(current_user, PROFESSOR_ROLE, 'Only professors can view their availabilities')

    try:
        return query_open_slots(db).filter(Availability.professor_id == current_user.id).all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching availabilities for professor %s', current_user.id)
        raise storage_failure('Error fetching availabilities') from exc


@router.get('/professor/{professor_id}', response_model=list[AvailabilityResponse])
def list_open_slots_for_professor(
    professor_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return query_open_slots(db).filter(Availability.professor_id == professor_id).all()
    except SQLAlchemyError as exc:
        logger.exception('Error fetching availabilities for professor %s', professor_id)
        raise storage_failure('Error fetching availabilities') from exc


@router.post('', response_model=AvailabilityResponse, status_code=status.HTTP_201_CREATED)
def create_slot(
    data: CreateSlotRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_role(current_user, PROFESSOR_ROLE, 'Only professors can add availability')

    try:
        slot = Availability(
            professor_id=current_user.id,
            start_time=data.start_time,
            end_time=data.end_time,
            is_booked=False,
        )
        db.add(slot)
        db.commit()
        db.refresh(slot)

        logger.info('Professor %s added availability %s', current_user.id, slot.id)
        return slot
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error adding availability')
        raise storage_failure('Error adding availability') from exc


@router.delete('/{slot_id}', response_model=MessageResponse)
def delete_slot(
    slot_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_role(current_user, PROFESSOR_ROLE, 'Only professors can delete availability')

    try:
        slot = db.query(Availability).filter(
            Availability.id == slot_id,
            Availability.professor_id == current_user.id,
        ).first()

        if not slot:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Availability not found',
            )

        if slot.is_booked:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Cannot delete a booked availability slot',
            )

        # A booking may have claimed the slot since it was read.
        deleted = db.query(Availability).filter(
            Availability.id == slot_id,
            Availability.professor_id == current_user.id,
            Availability.is_booked.is_(False),
        ).delete(synchronize_session=False)

        if not deleted:
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail='Cannot delete a booked availability slot',
            )

        db.commit()
        logger.info('Professor %s deleted availability %s', current_user.id, slot_id)
        return MessageResponse(message='Availability deleted successfully')
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Error deleting availability %s', slot_id)
        raise storage_failure('Error deleting availability') from exc
