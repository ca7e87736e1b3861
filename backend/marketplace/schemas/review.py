"""
Pydantic schemas for reviews.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from marketplace.schemas.common import Rating


class ReviewCreate(BaseModel):
    # Type and range are checked by the booking engine (InvalidRating)
    rating: Any
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewResponse(BaseModel):
    id: int
    booking_id: int
    business_id: int
    rating: int
    comment: Optional[str]
    created_at: datetime
    business_rating: Rating
    business_total_reviews: int
