"""
Review model: one rating per completed booking.
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, Text

from marketplace.db.base import Base, TimestampMixin


class Review(Base, TimestampMixin):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), unique=True, nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="check_review_rating_range"),
    )

    def __repr__(self) -> str:
        return f"<Review(id={self.id}, booking={self.booking_id}, rating={self.rating})>"
