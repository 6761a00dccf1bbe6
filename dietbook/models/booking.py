"""Booking model definitions."""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, text

from dietbook.database import Base


BOOKING_CONFIRMED = 'CONFIRMED'
BOOKING_COMPLETED = 'COMPLETED'
BOOKING_CANCELLED = 'CANCELLED'

# Statuses that occupy time on the dietitian's calendar.
ACTIVE_BOOKING_STATUSES = (BOOKING_CONFIRMED, BOOKING_COMPLETED)

_ACTIVE_SLOT_PREDICATE = text("status IN ('CONFIRMED', 'COMPLETED')")


class Booking(Base):
    """Represents a committed reservation. Times are naive UTC."""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True)
    dietitian_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"))
    client_email = Column(String)
    event_type_id = Column(Integer, ForeignKey("event_types.id"))
    session_request_id = Column(Integer, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default=BOOKING_CONFIRMED)

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_booking_time_order"),
        Index("idx_bookings_dietitian_range", "dietitian_id", "start_time", "end_time"),
        Index(
            "uq_bookings_active_slot",
            "dietitian_id",
            "start_time",
            unique=True,
            sqlite_where=_ACTIVE_SLOT_PREDICATE,
            postgresql_where=_ACTIVE_SLOT_PREDICATE,
        ),
    )
