"""Availability model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer, Time, UniqueConstraint
from sqlalchemy.orm import relationship

from dietbook.database import Base, utcnow


class AvailabilitySchedule(Base):
    """Weekly recurring window in which a dietitian accepts bookings."""
    __tablename__ = "availability_schedules"

    id = Column(Integer, primary_key=True)
    dietitian_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="ck_schedule_day_of_week"),
        CheckConstraint("start_time < end_time", name="ck_schedule_time_order"),
        Index("idx_availability_schedules_active", "dietitian_id", "active"),
    )


class AvailabilityOverride(Base):
    """Replaces the weekly rules on one local date, or blocks the date entirely."""
    __tablename__ = "availability_date_overrides"

    id = Column(Integer, primary_key=True)
    dietitian_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    override_date = Column(Date, nullable=False)
    is_unavailable = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    slots = relationship(
        "AvailabilityOverrideSlot",
        cascade="all, delete-orphan",
        order_by="AvailabilityOverrideSlot.start_time",
    )

    __table_args__ = (
        UniqueConstraint("dietitian_id", "override_date", name="uq_override_dietitian_date"),
    )


class AvailabilityOverrideSlot(Base):
    __tablename__ = "availability_date_override_slots"

    id = Column(Integer, primary_key=True)
    override_id = Column(Integer, ForeignKey("availability_date_overrides.id", ondelete="CASCADE"), nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_override_slot_time_order"),
    )
