import os
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from fastapi.testclient import TestClient  # noqa: E402

from office_hours.auth import jwt_handler  # noqa: E402
from office_hours.database import Base, get_db  # noqa: E402
from office_hours.main import app  # noqa: E402
from office_hours.models.availability import Availability  # noqa: E402
from office_hours.models.user import PROFESSOR_ROLE, STUDENT_ROLE, User  # noqa: E402


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    def _make_user(name: str, role: str, department: str = 'Computer Science') -> User:
        user = User(
            name=name,
            email=f"{name.lower().replace(' ', '')}@test.com",
            hashed_password='',
            role=role,
            department=department,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def student(make_user) -> User:
    return make_user('Student A1', STUDENT_ROLE)


@pytest.fixture
def professor(make_user) -> User:
    return make_user('Professor P1', PROFESSOR_ROLE)


@pytest.fixture
def make_slot(db):
    def _make_slot(owner: User, hours_from_now: int = 24, is_booked: bool = False) -> Availability:
        start_time = datetime(2030, 1, 7, 9, 0) + timedelta(hours=hours_from_now)
        slot = Availability(
            professor_id=owner.id,
            start_time=start_time,
            end_time=start_time + timedelta(hours=1),
            is_booked=is_booked,
        )
        db.add(slot)
        db.commit()
        db.refresh(slot)
        return slot

    return _make_slot


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> dict[str, str]:
        token = jwt_handler.create_access_token(user_id=user.id, role=user.role)
        return {'Authorization': f'Bearer {token}'}

    return _auth_headers
