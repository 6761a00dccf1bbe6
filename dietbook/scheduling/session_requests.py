"""
Session request lifecycle.

Every status change goes through ``SessionRequestStateMachine._transition``,
which issues a single conditional update (``WHERE id = ? AND status = ?``)
inside the same transaction as any booking write. When two actors race on
one request, exactly one update matches a row; the other sees zero rows and
gets ``InvalidTransition`` with the status that won.

Approvals that reserve time check for conflicts only after the status update
and while holding the dietitian's row, so two requests for overlapping slots
are checked one after the other and the later one gets
``SlotNoLongerAvailable``.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from dietbook.auth.permissions import deny, normalize_email
from dietbook.core import config
from dietbook.core.errors import (
    InvalidTransition,
    NotFoundError,
    SlotNoLongerAvailable,
    ValidationError,
)
from dietbook.database import utcnow
from dietbook.models.booking import ACTIVE_BOOKING_STATUSES, BOOKING_CONFIRMED, Booking
from dietbook.models.event_type import EventType
from dietbook.models.session_request import (
    REQUEST_CONSULTATION,
    REQUEST_MEAL_PLAN,
    REQUEST_RESCHEDULE,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    STATUS_RESCHEDULE_REQUESTED,
    SessionRequest,
)
from dietbook.models.user import User
from dietbook.scheduling.conflicts import BookingConflictChecker
from dietbook.scheduling.schemas import SessionRequestCreate
from dietbook.scheduling.storage import storage_operation
from dietbook.scheduling.timezones import from_storage, parse_instant, to_storage

logger = logging.getLogger(__name__)

APPROVE = 'approve'
REJECT = 'reject'
RESCHEDULE = 'request_reschedule'

TRANSITIONS = {
    (STATUS_PENDING, APPROVE): STATUS_APPROVED,
    (STATUS_PENDING, REJECT): STATUS_REJECTED,
    (STATUS_PENDING, RESCHEDULE): STATUS_RESCHEDULE_REQUESTED,
    (STATUS_RESCHEDULE_REQUESTED, APPROVE): STATUS_APPROVED,
    (STATUS_RESCHEDULE_REQUESTED, REJECT): STATUS_REJECTED,
}

# Request types that reserve calendar time when approved.
SLOT_BOUND_TYPES = (REQUEST_CONSULTATION, REQUEST_RESCHEDULE)


def next_status(current: str, event: str) -> str:
    target = TRANSITIONS.get((current, event))
    if target is None:
        raise InvalidTransition(
            f'Cannot {event.replace("_", " ")} a session request that is {current}.',
            current_status=current,
        )
    return target


def is_party(user: User, request: SessionRequest) -> bool:
    if user.is_dietitian and user.id == request.dietitian_id:
        return True
    return normalize_email(user.email) == request.client_email


def is_approver(user: User, request: SessionRequest) -> bool:
    """Consultations are confirmed by the dietitian; meal plans and reschedules by the client.

    A proposed new time is always confirmed by the other party.
    """
    if request.status == STATUS_RESCHEDULE_REQUESTED and request.proposed_by:
        return is_party(user, request) and normalize_email(user.email) != request.proposed_by
    if request.request_type == REQUEST_CONSULTATION:
        return user.is_dietitian and user.id == request.dietitian_id
    return normalize_email(user.email) == request.client_email


class SessionRequestStateMachine:
    def __init__(
        self,
        db: Session,
        conflicts: BookingConflictChecker | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.db = db
        self.conflicts = conflicts or BookingConflictChecker(db)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # Reads

    def get(self, actor: User, request_id: int) -> SessionRequest:
        with storage_operation(self.db, 'read session request'):
            request = self._load(request_id)
        if not is_party(actor, request):
            raise deny(actor, f'read session request {request_id}', 'Forbidden: this session request does not belong to you.')
        return request

    def list_for(self, actor: User) -> list[SessionRequest]:
        with storage_operation(self.db, 'list session requests'):
            query = self.db.query(SessionRequest)
            if actor.is_dietitian:
                query = query.filter(SessionRequest.dietitian_id == actor.id)
            else:
                query = query.filter(SessionRequest.client_email == normalize_email(actor.email))
            return query.order_by(SessionRequest.created_at.desc(), SessionRequest.id.desc()).all()

    # Creation

    def create(self, actor: User, payload: SessionRequestCreate) -> SessionRequest:
        with storage_operation(self.db, 'create session request'):
            if actor.is_dietitian:
                dietitian_id = actor.id
                client_email = normalize_email(payload.client_email)
                if not client_email:
                    raise ValidationError('Client email is required.')
            else:
                client_email = normalize_email(actor.email)
                dietitian_id = payload.dietitian_id
                if dietitian_id is None:
                    raise ValidationError('dietitianId is required.')
                dietitian = self.db.query(User).filter(User.id == dietitian_id).first()
                if dietitian is None or not dietitian.is_dietitian:
                    raise NotFoundError('Dietitian not found.')

            requested_date = None
            if payload.requested_date is not None:
                requested_date = parse_instant(payload.requested_date)
                if requested_date <= self._now():
                    raise ValidationError('Requested date must be in the future.')

            request = SessionRequest(
                request_type=payload.request_type,
                client_name=(payload.client_name or '').strip() or None,
                client_email=client_email,
                dietitian_id=dietitian_id,
                message=payload.message or None,
                status=STATUS_PENDING,
                payment_data=payload.payment_data,
            )

            if payload.request_type == REQUEST_CONSULTATION:
                if requested_date is None:
                    raise ValidationError('Requested date is required for consultation requests.')
                event_type = self._owned_event_type(payload.event_type_id, dietitian_id)
                request.event_type_id = event_type.id
                request.price = event_type.price
                request.currency = event_type.currency
            elif payload.request_type == REQUEST_MEAL_PLAN:
                if not payload.meal_plan_type:
                    raise ValidationError('Meal plan type is required for meal plan requests.')
                request.meal_plan_type = payload.meal_plan_type
                request.price = payload.price
                request.currency = payload.currency or config.DEFAULT_CURRENCY
            elif payload.request_type == REQUEST_RESCHEDULE:
                booking = self._rescheduled_booking(payload.original_booking_id, dietitian_id, client_email)
                if requested_date is None:
                    raise ValidationError('Requested date is required for reschedule requests.')
                request.original_booking_id = booking.id
                request.event_type_id = booking.event_type_id
            else:
                raise ValidationError('Invalid request type.')

            if requested_date is not None and payload.request_type in SLOT_BOUND_TYPES:
                request.requested_date = to_storage(requested_date)

            self.db.add(request)
            self.db.commit()
            self.db.refresh(request)

        logger.info('Created %s session request %s for dietitian %s.', request.request_type, request.id, dietitian_id)
        return request

    # Transitions

    def approve(self, actor: User, request_id: int) -> SessionRequest:
        return self._transition(actor, request_id, APPROVE)

    def reject(self, actor: User, request_id: int) -> SessionRequest:
        return self._transition(actor, request_id, REJECT)

    def request_reschedule(self, actor: User, request_id: int, requested_date: datetime | str) -> SessionRequest:
        proposed = parse_instant(requested_date)
        if proposed <= self._now():
            raise ValidationError('Requested date must be in the future.')
        return self._transition(actor, request_id, RESCHEDULE, proposed_date=proposed)

    def _transition(
        self,
        actor: User,
        request_id: int,
        event: str,
        proposed_date: datetime | None = None,
    ) -> SessionRequest:
        with storage_operation(self.db, f'{event} session request {request_id}'):
            request = self._load(request_id)
            expected = request.status
            target = next_status(expected, event)
            self._authorize(actor, request, event)

            changes = {}
            if event == RESCHEDULE:
                if request.request_type not in SLOT_BOUND_TYPES:
                    raise ValidationError('Only consultation and reschedule requests can be rescheduled.')
                changes[SessionRequest.requested_date] = to_storage(proposed_date)
                changes[SessionRequest.proposed_by] = normalize_email(actor.email)

            if not self._compare_and_set(request.id, expected, target, changes):
                self.db.rollback()
                current = self._current_status(request.id)
                raise InvalidTransition(
                    f'Session request is already {current}.',
                    current_status=current,
                )

            try:
                if event == APPROVE and request.request_type in SLOT_BOUND_TYPES:
                    self._reserve(request)
                self.db.commit()
            except IntegrityError as exc:
                self.db.rollback()
                raise SlotNoLongerAvailable('The requested time slot is no longer available.') from exc

            self.db.refresh(request)

        logger.info('Session request %s moved %s -> %s by user %s.', request_id, expected, target, actor.id)
        return request

    def _authorize(self, actor: User, request: SessionRequest, event: str) -> None:
        allowed = is_approver(actor, request) if event == APPROVE else is_party(actor, request)
        if not allowed:
            raise deny(
                actor,
                f'{event} session request {request.id}',
                'Forbidden: this session request does not belong to you.',
            )

    def _compare_and_set(self, request_id: int, expected: str, target: str, changes: dict | None = None) -> bool:
        values = {SessionRequest.status: target, SessionRequest.updated_at: utcnow()}
        values.update(changes or {})
        updated = self.db.query(SessionRequest).filter(
            SessionRequest.id == request_id,
            SessionRequest.status == expected,
        ).update(values, synchronize_session=False)
        return updated == 1

    def _current_status(self, request_id: int) -> str | None:
        return self.db.query(SessionRequest.status).filter(SessionRequest.id == request_id).scalar()

    def _reserve(self, request: SessionRequest) -> Booking:
        """Check and book the requested slot while holding the dietitian's calendar.

        Runs after the status update, so on SQLite the transaction already owns
        the write lock; on Postgres the dietitian row lock serializes approvals
        for that dietitian until commit.
        """
        self.db.query(User).filter(User.id == request.dietitian_id).with_for_update().one()

        start, end = self._requested_interval(request)
        if self.conflicts.has_conflict(
            request.dietitian_id,
            start,
            end,
            exclude_booking_id=request.original_booking_id,
        ):
            raise SlotNoLongerAvailable('The requested time slot is no longer available.')
        return self._commit_booking(request, start, end)

    def _requested_interval(self, request: SessionRequest) -> tuple[datetime, datetime]:
        if request.requested_date is None:
            raise ValidationError('Session request has no requested date to book.')

        start = from_storage(request.requested_date)
        if request.request_type == REQUEST_RESCHEDULE and request.original_booking_id is not None:
            booking = self._booking(request.original_booking_id)
            if booking.status not in ACTIVE_BOOKING_STATUSES:
                raise SlotNoLongerAvailable('The booking being rescheduled is no longer active.')
            duration = booking.end_time - booking.start_time
        else:
            event_type = self.db.query(EventType).filter(EventType.id == request.event_type_id).first()
            if event_type is None:
                raise NotFoundError('Event type not found.')
            duration = timedelta(minutes=event_type.duration_minutes)

        return start, start + duration

    def _commit_booking(self, request: SessionRequest, start: datetime, end: datetime) -> Booking:
        if request.request_type == REQUEST_RESCHEDULE and request.original_booking_id is not None:
            booking = self._booking(request.original_booking_id)
            booking.start_time = to_storage(start)
            booking.end_time = to_storage(end)
            booking.session_request_id = request.id
        else:
            client = self.db.query(User).filter(User.email == request.client_email).first()
            booking = Booking(
                dietitian_id=request.dietitian_id,
                user_id=client.id if client else None,
                client_email=request.client_email,
                event_type_id=request.event_type_id,
                session_request_id=request.id,
                start_time=to_storage(start),
                end_time=to_storage(end),
                status=BOOKING_CONFIRMED,
            )
            self.db.add(booking)

        self.db.flush()
        return booking

    def _load(self, request_id: int) -> SessionRequest:
        request = self.db.query(SessionRequest).filter(SessionRequest.id == request_id).first()
        if request is None:
            raise NotFoundError('Session request not found.')
        return request

    def _booking(self, booking_id: int) -> Booking:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if booking is None:
            raise NotFoundError('Original booking not found.')
        return booking

    def _owned_event_type(self, event_type_id: int | None, dietitian_id: int) -> EventType:
        if event_type_id is None:
            raise ValidationError('Event type is required for consultation requests.')
        event_type = self.db.query(EventType).filter(EventType.id == event_type_id).first()
        if event_type is None or event_type.dietitian_id != dietitian_id or not event_type.active:
            raise NotFoundError('Event type not found or does not belong to this dietitian.')
        return event_type

    def _rescheduled_booking(self, booking_id: int | None, dietitian_id: int, client_email: str) -> Booking:
        if booking_id is None:
            raise ValidationError('originalBookingId is required for reschedule requests.')
        booking = self._booking(booking_id)
        if booking.dietitian_id != dietitian_id or normalize_email(booking.client_email) != client_email:
            raise NotFoundError('Original booking not found.')
        if booking.status not in ACTIVE_BOOKING_STATUSES:
            raise ValidationError('Only confirmed bookings can be rescheduled.')
        return booking

    def _now(self) -> datetime:
        current = self._clock()
        if current.tzinfo is None:
            return current.replace(tzinfo=timezone.utc)
        return current
