"""
Business model: a service provider listed on the marketplace.

Key design decisions:
- `rating` / `total_reviews` are denormalized and written only by the review
  aggregator, which recomputes them from the reviews table
- `commission_rate` is read at booking time and copied into the booking as an
  amount, so changing it never alters existing bookings
- Contact fields (address, phone, email) are private until a client books
"""

from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Column, Index, Integer, Numeric, String, Text

from marketplace.db.base import Base, TimestampMixin


class Business(Base, TimestampMixin):
    __tablename__ = "businesses"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    category = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    address = Column(String(255), nullable=True)
    zone = Column(String(100), nullable=True)
    city = Column(String(100), nullable=False, default="Gijón")
    plan = Column(String(20), nullable=False, default="free")
    commission_rate = Column(Numeric(5, 4), nullable=False, default=Decimal("0.15"))
    rating = Column(Numeric(3, 1), nullable=False, default=Decimal("0"))
    total_reviews = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("commission_rate >= 0 AND commission_rate <= 1", name="check_commission_rate_fraction"),
        CheckConstraint("total_reviews >= 0", name="check_total_reviews_non_negative"),
        # Listing query: filter by category, order by rating
        Index("ix_businesses_category_rating", "category", "rating"),
    )

    def __repr__(self) -> str:
        return f"<Business(id={self.id}, name={self.name}, category={self.category})>"
