"""
Booking model: a client's reservation of one availability slot.

Key design decisions:
- `price` and `commission_amount` are copied at creation and never recomputed
- `date` / `time` are denormalized from the slot for listing and the
  cancellation-notice computation
- Partial unique index on availability_id for non-cancelled bookings: the
  database refuses a second live booking on the same slot even if the
  conditional slot update were bypassed
- `confirmation_code` is unique across all bookings
"""

from decimal import Decimal

from sqlalchemy import (
    CheckConstraint, Column, Date, ForeignKey, Index, Integer, Numeric, String, Time, text,
)

from marketplace.db.base import Base, TimestampMixin


class BookingStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    TERMINAL = (CANCELLED, COMPLETED)
    # States that keep the slot held
    ACTIVE = (PENDING, CONFIRMED, COMPLETED)
    CANCELLABLE = (PENDING, CONFIRMED)


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=False)
    availability_id = Column(Integer, ForeignKey("availability.id"), nullable=False)
    date = Column(Date, nullable=False)
    time = Column(Time, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    commission_amount = Column(Numeric(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING)
    cancellation_charge = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    confirmation_code = Column(String(16), unique=True, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="check_booking_status",
        ),
        CheckConstraint("cancellation_charge >= 0", name="check_cancellation_charge_non_negative"),
        Index(
            "uq_bookings_live_availability",
            "availability_id",
            unique=True,
            postgresql_where=text("status != 'cancelled'"),
            sqlite_where=text("status != 'cancelled'"),
        ),
        Index("ix_bookings_business_date", "business_id", "date"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, code={self.confirmation_code}, status={self.status})>"
