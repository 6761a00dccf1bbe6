"""Session request model definitions."""

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String

from dietbook.core import config
from dietbook.database import Base, utcnow


REQUEST_CONSULTATION = 'CONSULTATION'
REQUEST_MEAL_PLAN = 'MEAL_PLAN'
REQUEST_RESCHEDULE = 'RESCHEDULE_REQUEST'

STATUS_PENDING = 'PENDING'
STATUS_APPROVED = 'APPROVED'
STATUS_REJECTED = 'REJECTED'
STATUS_RESCHEDULE_REQUESTED = 'RESCHEDULE_REQUESTED'
TERMINAL_STATUSES = (STATUS_APPROVED, STATUS_REJECTED)


class SessionRequest(Base):
    """A client ask awaiting a decision. Times are naive UTC."""
    __tablename__ = "session_requests"

    id = Column(Integer, primary_key=True)
    request_type = Column(String, nullable=False)
    client_name = Column(String)
    client_email = Column(String, nullable=False, index=True)
    dietitian_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    message = Column(String)
    status = Column(String, nullable=False, default=STATUS_PENDING, index=True)
    event_type_id = Column(Integer, ForeignKey("event_types.id"))
    meal_plan_type = Column(String)
    price = Column(Numeric(10, 2))
    currency = Column(String, default=config.DEFAULT_CURRENCY)
    requested_date = Column(DateTime)
    proposed_by = Column(String)  # email of the party that proposed requested_date
    original_booking_id = Column(Integer, ForeignKey("bookings.id"))
    payment_data = Column(JSON)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "request_type IN ('CONSULTATION', 'MEAL_PLAN', 'RESCHEDULE_REQUEST')",
            name="ck_session_request_type",
        ),
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED', 'RESCHEDULE_REQUESTED')",
            name="ck_session_request_status",
        ),
    )
