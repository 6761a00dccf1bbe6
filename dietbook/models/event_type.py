"""Event type model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint

from dietbook.core import config
from dietbook.database import Base, utcnow


class EventType(Base):
    """Bookable service; its duration sizes the generated slots."""
    __tablename__ = "event_types"

    id = Column(Integer, primary_key=True)
    dietitian_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    slug = Column(String)
    description = Column(Text)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2))
    currency = Column(String, nullable=False, default=config.DEFAULT_CURRENCY)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_event_type_duration"),
        UniqueConstraint("dietitian_id", "slug", name="uq_event_types_dietitian_slug"),
    )
