"""Out-of-office model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer, String

from dietbook.database import Base, utcnow


class OutOfOfficePeriod(Base):
    """Inclusive date range during which a dietitian takes no bookings."""
    __tablename__ = "out_of_office_periods"

    id = Column(Integer, primary_key=True)
    dietitian_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(String, nullable=False, default="Unspecified")
    notes = Column(String, nullable=False, default="")
    forward_to_team = Column(Boolean, nullable=False, default=False)
    forward_url = Column(String)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_ooo_valid_date_range"),
        Index("idx_out_of_office_periods_dietitian_dates", "dietitian_id", "start_date", "end_date"),
    )
