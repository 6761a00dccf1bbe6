from __future__ import annotations

import logging
import re
from decimal import Decimal

from sqlalchemy.orm import Session

from dietbook.core import config
from dietbook.core.errors import ForbiddenError, NotFoundError, ValidationError
from dietbook.models.booking import Booking
from dietbook.models.event_type import EventType
from dietbook.models.session_request import SessionRequest
from dietbook.scheduling.schemas import EventTypeIn, EventTypeUpdate
from dietbook.scheduling.storage import storage_operation

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r'^[a-z0-9]+(?:-[a-z0-9]+)*$')


def _clean_slug(value: str) -> str:
    slug = (value or '').strip().lower()
    if not SLUG_PATTERN.match(slug):
        raise ValidationError('Slug may only contain lowercase letters, numbers and single hyphens.')
    return slug


def _validate_terms(duration_minutes: int, price: Decimal | None) -> None:
    if duration_minutes <= 0:
        raise ValidationError('Duration must be a positive number of minutes.')
    if price is not None and price < 0:
        raise ValidationError('Price cannot be negative.')


class EventTypeStore:
    """Bookable services offered by one dietitian."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def list(self, dietitian_id: int) -> list[EventType]:
        with storage_operation(self.db, 'list event types'):
            return self.db.query(EventType).filter(
                EventType.dietitian_id == dietitian_id,
            ).order_by(EventType.created_at.desc(), EventType.id.desc()).all()

    def get(self, dietitian_id: int, event_type_id: int) -> EventType:
        with storage_operation(self.db, 'read event type'):
            return self._owned(dietitian_id, event_type_id)

    def create(self, dietitian_id: int, data: EventTypeIn) -> EventType:
        title = (data.title or '').strip()
        if not title:
            raise ValidationError('Title is required.')
        slug = _clean_slug(data.slug)
        _validate_terms(data.duration_minutes, data.price)

        with storage_operation(self.db, 'create event type'):
            self._ensure_slug_free(dietitian_id, slug)
            event_type = EventType(
                dietitian_id=dietitian_id,
                title=title,
                slug=slug,
                description=data.description,
                duration_minutes=data.duration_minutes,
                price=data.price,
                currency=data.currency or config.DEFAULT_CURRENCY,
                active=True,
            )
            self.db.add(event_type)
            self.db.commit()
            self.db.refresh(event_type)

        logger.info('Dietitian %s created event type %s (%s).', dietitian_id, event_type.id, slug)
        return event_type

    def update(self, dietitian_id: int, event_type_id: int, changes: EventTypeUpdate) -> EventType:
        with storage_operation(self.db, 'update event type'):
            event_type = self._owned(dietitian_id, event_type_id)

            if changes.title is not None:
                title = changes.title.strip()
                if not title:
                    raise ValidationError('Title is required.')
                event_type.title = title
            if changes.slug is not None:
                slug = _clean_slug(changes.slug)
                if slug != event_type.slug:
                    self._ensure_slug_free(dietitian_id, slug)
                event_type.slug = slug
            if changes.description is not None:
                event_type.description = changes.description

            duration = changes.duration_minutes if changes.duration_minutes is not None else event_type.duration_minutes
            price = changes.price if changes.price is not None else event_type.price
            _validate_terms(duration, price)
            event_type.duration_minutes = duration
            event_type.price = price

            if changes.currency is not None:
                event_type.currency = changes.currency or config.DEFAULT_CURRENCY
            if changes.active is not None:
                event_type.active = changes.active

            self.db.commit()
            self.db.refresh(event_type)
            return event_type

    def delete(self, dietitian_id: int, event_type_id: int) -> bool:
        """Remove the event type, or deactivate it when bookings or requests still point at it.

        Returns True when the row was removed.
        """
        with storage_operation(self.db, 'delete event type'):
            event_type = self._owned(dietitian_id, event_type_id)

            referenced = (
                self.db.query(Booking.id).filter(Booking.event_type_id == event_type.id).first() is not None
                or self.db.query(SessionRequest.id).filter(SessionRequest.event_type_id == event_type.id).first() is not None
            )
            if referenced:
                event_type.active = False
                self.db.commit()
                logger.info('Event type %s is referenced; deactivated instead of deleting.', event_type_id)
                return False

            self.db.delete(event_type)
            self.db.commit()
            return True

    def _ensure_slug_free(self, dietitian_id: int, slug: str) -> None:
        taken = self.db.query(EventType.id).filter(
            EventType.dietitian_id == dietitian_id,
            EventType.slug == slug,
        ).first()
        if taken is not None:
            raise ValidationError('You already have an event type with this slug.')

    def _owned(self, dietitian_id: int, event_type_id: int) -> EventType:
        event_type = self.db.query(EventType).filter(EventType.id == event_type_id).first()
        if event_type is None:
            raise NotFoundError('Event type not found.')
        if event_type.dietitian_id != dietitian_id:
            logger.warning('Dietitian %s attempted to access event type %s owned by %s.', dietitian_id, event_type_id, event_type.dietitian_id)
            raise ForbiddenError('Forbidden: this event type does not belong to you.')
        return event_type
