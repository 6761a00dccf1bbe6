from datetime import datetime

from sqlalchemy.orm import Query, Session

from dietbook.core.errors import ValidationError
from dietbook.models.booking import ACTIVE_BOOKING_STATUSES, Booking
from dietbook.scheduling.storage import storage_operation
from dietbook.scheduling.timezones import from_storage, to_storage


class BookingConflictChecker:
    """Half-open overlap test against bookings that occupy time.

    ``[a, b)`` and ``[c, d)`` overlap when ``a < d`` and ``b > c``, so
    back-to-back bookings never conflict.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def has_conflict(
        self,
        dietitian_id: int,
        start: datetime,
        end: datetime,
        exclude_booking_id: int | None = None,
    ) -> bool:
        with storage_operation(self.db, 'check booking conflicts'):
            return self._overlapping(dietitian_id, start, end, exclude_booking_id).first() is not None

    def find_conflicts(
        self,
        dietitian_id: int,
        start: datetime,
        end: datetime,
        exclude_booking_id: int | None = None,
    ) -> list[Booking]:
        with storage_operation(self.db, 'find booking conflicts'):
            return self._overlapping(dietitian_id, start, end, exclude_booking_id).order_by(
                Booking.start_time.asc(),
            ).all()

    def active_bookings(self, dietitian_id: int, start: datetime, end: datetime) -> list[tuple[datetime, datetime]]:
        return [
            (from_storage(booking.start_time), from_storage(booking.end_time))
            for booking in self.find_conflicts(dietitian_id, start, end)
        ]

    def _overlapping(
        self,
        dietitian_id: int,
        start: datetime,
        end: datetime,
        exclude_booking_id: int | None,
    ) -> Query:
        if start >= end:
            raise ValidationError('Start time must be before end time.')

        query = self.db.query(Booking).filter(
            Booking.dietitian_id == dietitian_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            Booking.start_time < to_storage(end),
            Booking.end_time > to_storage(start),
        )
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)
        return query
