"""
Service model: something a business sells, with a duration and a price.

Bookings copy `price` at creation time; editing a service never touches
bookings that already reference it.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, Numeric, String

from marketplace.db.base import Base, TimestampMixin


class Service(Base, TimestampMixin):
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("price > 0", name="check_service_price_positive"),
        CheckConstraint("duration_minutes > 0", name="check_service_duration_positive"),
    )

    def __repr__(self) -> str:
        return f"<Service(id={self.id}, business={self.business_id}, price={self.price})>"
