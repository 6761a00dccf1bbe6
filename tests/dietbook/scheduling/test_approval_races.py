"""Two sessions on one file-backed database, with the second approval forced
into the middle of the first one."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from dietbook.core.errors import InvalidTransition, SlotNoLongerAvailable, TransientStorageError
from dietbook.database import Base
from dietbook.models.booking import BOOKING_CONFIRMED, Booking
from dietbook.models.event_type import EventType
from dietbook.models.session_request import STATUS_APPROVED, STATUS_PENDING, SessionRequest
from dietbook.models.user import ROLE_DIETITIAN, ROLE_USER, User
from dietbook.scheduling.conflicts import BookingConflictChecker
from dietbook.scheduling.schemas import SessionRequestCreate
from dietbook.scheduling.session_requests import SessionRequestStateMachine

NOW = datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)
SLOT = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


class InterleavingChecker(BookingConflictChecker):
    """Runs ``interleave`` once, just before the first conflict check."""

    def __init__(self, db, interleave) -> None:
        super().__init__(db)
        self.interleave = interleave

    def has_conflict(self, *args, **kwargs) -> bool:
        if self.interleave is not None:
            run, self.interleave = self.interleave, None
            run()
        return super().has_conflict(*args, **kwargs)


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'races.db'}",
        connect_args={'check_same_thread': False, 'timeout': 0.2},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield factory
    finally:
        engine.dispose()


@pytest.fixture
def seeded(session_factory) -> dict:
    db = session_factory()
    try:
        dietitian = User(email='ada@clinic.ng', name='Ada Obi', role=ROLE_DIETITIAN, timezone='Africa/Lagos')
        client = User(email='chioma@example.com', name='Chioma Eze', role=ROLE_USER, timezone='Africa/Lagos')
        db.add_all([dietitian, client])
        db.commit()

        event_type = EventType(
            dietitian_id=dietitian.id,
            title='Initial consultation',
            slug='initial-consultation',
            duration_minutes=60,
            price=Decimal('15000.00'),
            currency='NGN',
        )
        db.add(event_type)
        db.commit()

        machine = SessionRequestStateMachine(db, clock=lambda: NOW)
        requests = [
            machine.create(
                client,
                SessionRequestCreate(
                    request_type='CONSULTATION',
                    dietitian_id=dietitian.id,
                    event_type_id=event_type.id,
                    requested_date=start,
                ),
            )
            for start in (SLOT, SLOT + timedelta(minutes=30))
        ]
        return {'dietitian_id': dietitian.id, 'request_ids': [request.id for request in requests]}
    finally:
        db.close()


def test_same_request_approved_twice_books_once(session_factory, seeded, monkeypatch) -> None:
    request_id = seeded['request_ids'][0]
    db_a, db_b = session_factory(), session_factory()
    try:
        machine_a = SessionRequestStateMachine(db_a, clock=lambda: NOW)
        machine_b = SessionRequestStateMachine(db_b, clock=lambda: NOW)
        dietitian_a = db_a.get(User, seeded['dietitian_id'])
        dietitian_b = db_b.get(User, seeded['dietitian_id'])

        load = machine_a._load

        def load_then_lose_the_race(loaded_id: int) -> SessionRequest:
            request = load(loaded_id)
            machine_b.approve(dietitian_b, loaded_id)
            return request

        monkeypatch.setattr(machine_a, '_load', load_then_lose_the_race)

        with pytest.raises(InvalidTransition) as exception_info:
            machine_a.approve(dietitian_a, request_id)

        assert exception_info.value.current_status == STATUS_APPROVED
    finally:
        db_a.close()
        db_b.close()

    db = session_factory()
    try:
        assert db.query(Booking).filter(Booking.session_request_id == request_id).count() == 1
        assert db.get(SessionRequest, request_id).status == STATUS_APPROVED
    finally:
        db.close()


def test_overlapping_requests_approved_concurrently_book_once(session_factory, seeded) -> None:
    first_id, second_id = seeded['request_ids']
    db_a, db_b = session_factory(), session_factory()
    try:
        machine_b = SessionRequestStateMachine(db_b, clock=lambda: NOW)
        dietitian_b = db_b.get(User, seeded['dietitian_id'])
        interleaved_errors = []

        def approve_the_overlapping_request() -> None:
            try:
                machine_b.approve(dietitian_b, second_id)
            except (TransientStorageError, SlotNoLongerAvailable) as exc:
                interleaved_errors.append(exc)

        machine_a = SessionRequestStateMachine(
            db_a,
            conflicts=InterleavingChecker(db_a, approve_the_overlapping_request),
            clock=lambda: NOW,
        )
        dietitian_a = db_a.get(User, seeded['dietitian_id'])

        assert machine_a.approve(dietitian_a, first_id).status == STATUS_APPROVED
        assert len(interleaved_errors) == 1

        with pytest.raises(SlotNoLongerAvailable):
            machine_b.approve(dietitian_b, second_id)
    finally:
        db_a.close()
        db_b.close()

    db = session_factory()
    try:
        bookings = db.query(Booking).filter(Booking.status == BOOKING_CONFIRMED).all()
        assert [booking.session_request_id for booking in bookings] == [first_id]
        assert db.get(SessionRequest, second_id).status == STATUS_PENDING
    finally:
        db.close()
