from datetime import datetime, timezone

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from office_hours.models.availability import Availability
from office_hours.models.user import PROFESSOR_ROLE
from office_hours.routes.availability_routes import (
    CreateSlotRequest,
    create_slot,
    delete_slot,
    list_open_slots,
    list_open_slots_for_professor,
    list_own_slots,
)


def test_create_slot_request_accepts_camel_case_fields() -> None:
    request = CreateSlotRequest(startTime='2030-01-07T09:00:00', endTime='2030-01-07T10:00:00')

    assert request.start_time == datetime(2030, 1, 7, 9, 0)
    assert request.end_time == datetime(2030, 1, 7, 10, 0)


def test_create_slot_request_normalizes_aware_times_to_utc() -> None:
    request = CreateSlotRequest(startTime='2030-01-07T09:00:00+02:00', endTime='2030-01-07T10:00:00+02:00')

    assert request.start_time == datetime(2030, 1, 7, 7, 0)
    assert request.start_time.tzinfo is None


def test_create_slot_request_rejects_end_before_start() -> None:
    with pytest.raises(ValidationError):
        CreateSlotRequest(
            start_time=datetime(2030, 1, 7, 10, 0, tzinfo=timezone.utc),
            end_time=datetime(2030, 1, 7, 9, 0, tzinfo=timezone.utc),
        )


def test_create_slot_is_owned_by_professor_and_unbooked(db, professor) -> None:
    data = CreateSlotRequest(start_time=datetime(2030, 1, 7, 9, 0), end_time=datetime(2030, 1, 7, 10, 0))

    slot = create_slot(data=data, current_user=professor, db=db)

    assert slot.id is not None
    assert slot.professor_id == professor.id
    assert slot.is_booked is False


def test_create_slot_rejects_student(db, student) -> None:
    data = CreateSlotRequest(start_time=datetime(2030, 1, 7, 9, 0), end_time=datetime(2030, 1, 7, 10, 0))

    with pytest.raises(HTTPException) as exception_info:
        create_slot(data=data, current_user=student, db=db)

    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'Only professors can add availability'
    assert db.query(Availability).count() == 0


def test_create_slot_allows_overlapping_slots(db, professor) -> None:
    data = CreateSlotRequest(start_time=datetime(2030, 1, 7, 9, 0), end_time=datetime(2030, 1, 7, 10, 0))

    create_slot(data=data, current_user=professor, db=db)
    create_slot(data=data, current_user=professor, db=db)

    assert db.query(Availability).count() == 2


def test_list_open_slots_skips_booked_and_orders_by_start(db, professor, student, make_slot) -> None:
    later = make_slot(professor, hours_from_now=48)
    earlier = make_slot(professor, hours_from_now=24)
    make_slot(professor, hours_from_now=30, is_booked=True)

    slots = list_open_slots(current_user=student, db=db)

    assert [slot.id for slot in slots] == [earlier.id, later.id]
    assert slots[0].professor.name == 'Professor P1'


def test_list_open_slots_for_professor_filters_by_owner(db, professor, student, make_user, make_slot) -> None:
    other_professor = make_user('Professor P2', PROFESSOR_ROLE)
    own_slot = make_slot(professor)
    make_slot(other_professor)

    slots = list_open_slots_for_professor(professor_id=professor.id, current_user=student, db=db)

    assert [slot.id for slot in slots] == [own_slot.id]


def test_list_open_slots_for_unknown_professor_is_empty(db, student) -> None:
    assert list_open_slots_for_professor(professor_id=999, current_user=student, db=db) == []


def test_list_own_slots_rejects_student(db, student) -> None:
    with pytest.raises(HTTPException) as exception_info:
        list_own_slots(current_user=student, db=db)

    assert exception_info.value.status_code == 403


def test_list_own_slots_returns_only_unbooked_owned_slots(db, professor, make_user, make_slot) -> None:
    other_professor = make_user('Professor P2', PROFESSOR_ROLE)
    open_slot = make_slot(professor)
    make_slot(professor, hours_from_now=30, is_booked=True)
    make_slot(other_professor)

    slots = list_own_slots(current_user=professor, db=db)

    assert [slot.id for slot in slots] == [open_slot.id]


def test_delete_slot_removes_unbooked_slot(db, professor, make_slot) -> None:
    slot = make_slot(professor)

    response = delete_slot(slot_id=slot.id, current_user=professor, db=db)

    assert response.message == 'Availability deleted successfully'
    assert db.query(Availability).filter(Availability.id == slot.id).first() is None


def test_delete_slot_rejects_booked_slot(db, professor, make_slot) -> None:
    slot = make_slot(professor, is_booked=True)

    with pytest.raises(HTTPException) as exception_info:
        delete_slot(slot_id=slot.id, current_user=professor, db=db)

    assert exception_info.value.status_code == 409
    assert db.query(Availability).filter(Availability.id == slot.id).first() is not None


def test_delete_slot_returns_not_found_for_other_professors_slot(db, professor, make_user, make_slot) -> None:
    other_professor = make_user('Professor P2', PROFESSOR_ROLE)
    slot = make_slot(other_professor)

    with pytest.raises(HTTPException) as exception_info:
        delete_slot(slot_id=slot.id, current_user=professor, db=db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Availability not found'


def test_delete_slot_rejects_student(db, student, professor, make_slot) -> None:
    slot = make_slot(professor)

    with pytest.raises(HTTPException) as exception_info:
        delete_slot(slot_id=slot.id, current_user=student, db=db)

    assert exception_info.value.status_code == 403
