"""
Availability slot: one bookable (business, date, time) unit.

Key design decisions:
- Unique constraint on (business_id, date, time): one slot per key
- `status` only moves available -> booked through a conditional UPDATE
  (WHERE status = 'available'), which is the double-booking guard
- Composite index serves both the reservation lookup and date-range listings
"""

from sqlalchemy import CheckConstraint, Column, Date, ForeignKey, Index, Integer, String, Time, UniqueConstraint

from marketplace.db.base import Base, TimestampMixin


class SlotStatus:
    AVAILABLE = "available"
    BOOKED = "booked"

    ALL = (AVAILABLE, BOOKED)


class Availability(Base, TimestampMixin):
    __tablename__ = "availability"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False)
    date = Column(Date, nullable=False)
    time = Column(Time, nullable=False)
    status = Column(String(20), nullable=False, default=SlotStatus.AVAILABLE)

    __table_args__ = (
        UniqueConstraint("business_id", "date", "time", name="uq_availability_business_date_time"),
        CheckConstraint("status IN ('available', 'booked')", name="check_availability_status"),
        Index("ix_availability_business_status_date", "business_id", "status", "date"),
    )

    def __repr__(self) -> str:
        return f"<Availability(id={self.id}, business={self.business_id}, at={self.date} {self.time}, status={self.status})>"
