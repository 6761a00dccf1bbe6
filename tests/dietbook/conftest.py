import os
from datetime import datetime, time, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from dietbook.database import Base  # noqa: E402
from dietbook.models.availability import AvailabilityOverride, AvailabilitySchedule  # noqa: E402,F401
from dietbook.models.booking import BOOKING_CONFIRMED, Booking  # noqa: E402
from dietbook.models.event_type import EventType  # noqa: E402
from dietbook.models.out_of_office import OutOfOfficePeriod  # noqa: E402,F401
from dietbook.models.session_request import SessionRequest  # noqa: E402,F401
from dietbook.models.user import ROLE_DIETITIAN, ROLE_USER, User  # noqa: E402


@pytest.fixture
def db():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def dietitian(db) -> User:
    user = User(email='ada@clinic.ng', name='Ada Obi', role=ROLE_DIETITIAN, timezone='Africa/Lagos')
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_dietitian(db) -> User:
    user = User(email='tunde@clinic.ng', name='Tunde Bello', role=ROLE_DIETITIAN, timezone='Africa/Lagos')
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def client_user(db) -> User:
    user = User(email='chioma@example.com', name='Chioma Eze', role=ROLE_USER, timezone='Africa/Lagos')
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def event_type(db, dietitian) -> EventType:
    record = EventType(
        dietitian_id=dietitian.id,
        title='Initial consultation',
        slug='initial-consultation',
        duration_minutes=60,
        price=Decimal('15000.00'),
        currency='NGN',
        active=True,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def add_schedule(db):
    def _add(dietitian_id: int, day_of_week: int, start: time, end: time, active: bool = True) -> AvailabilitySchedule:
        schedule = AvailabilitySchedule(
            dietitian_id=dietitian_id,
            day_of_week=day_of_week,
            start_time=start,
            end_time=end,
            active=active,
        )
        db.add(schedule)
        db.commit()
        db.refresh(schedule)
        return schedule

    return _add


@pytest.fixture
def add_booking(db):
    def _add(dietitian_id: int, start: datetime, end: datetime, status: str = BOOKING_CONFIRMED, **fields) -> Booking:
        booking = Booking(
            dietitian_id=dietitian_id,
            start_time=start.astimezone(timezone.utc).replace(tzinfo=None),
            end_time=end.astimezone(timezone.utc).replace(tzinfo=None),
            status=status,
            **fields,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _add
