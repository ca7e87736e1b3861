"""
Pydantic schemas for the public catalog and business self-service.
"""

import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from marketplace.schemas.common import Money, Rate, Rating


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    duration_minutes: int = Field(..., gt=0, le=24 * 60)
    price: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)


class ServiceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    duration_minutes: Optional[int] = Field(None, gt=0, le=24 * 60)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    active: Optional[bool] = None


class ServiceResponse(BaseModel):
    id: int
    name: str
    duration_minutes: int
    price: Money
    active: bool

    model_config = {"from_attributes": True}


class OpenSlot(BaseModel):
    date: dt.date
    time: dt.time

    model_config = {"from_attributes": True}


class BusinessListing(BaseModel):
    """Public card. Contact details are only revealed through a booking."""

    id: int
    name: str
    category: str
    city: str
    rating: Rating
    total_reviews: int
    min_price: Optional[Money] = None

    model_config = {"from_attributes": True}


class BusinessDetail(BaseModel):
    id: int
    name: str
    category: str
    city: str
    description: Optional[str]
    rating: Rating
    total_reviews: int
    services: list[ServiceResponse]
    available_slots: list[OpenSlot]


class BusinessProfile(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str]
    category: str
    description: Optional[str]
    address: Optional[str]
    zone: Optional[str]
    city: str
    plan: str
    commission_rate: Rate
    rating: Rating
    total_reviews: int
    active: bool
    created_at: dt.datetime

    model_config = {"from_attributes": True}


class BusinessStats(BaseModel):
    month: Optional[str]
    total: int
    confirmed: int
    cancelled: int
    pending: int
    gross_revenue: Money
    commissions: Money
    net_revenue: Money
    cancellation_charges: Money
