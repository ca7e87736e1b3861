"""
Pydantic schemas for booking-related request/response validation.
"""

import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from marketplace.schemas.common import Money


class BookingCreate(BaseModel):
    business_id: int
    service_id: int
    date: dt.date
    time: dt.time


class BookingResponse(BaseModel):
    id: int
    client_id: int
    business_id: int
    service_id: int
    availability_id: int
    date: dt.date
    time: dt.time
    price: Money
    commission_amount: Money
    status: str
    cancellation_charge: Money
    confirmation_code: str
    created_at: dt.datetime

    model_config = {"from_attributes": True}


class BusinessContact(BaseModel):
    name: str
    address: Optional[str]
    phone: Optional[str]
    zone: Optional[str]

    model_config = {"from_attributes": True}


class BookingReceipt(BaseModel):
    id: int
    confirmation_code: str
    date: dt.date
    time: dt.time
    status: str
    service: str
    price: Money
    commission_amount: Money
    business: BusinessContact
    cancellation_policy: str


class BookingCreatedResponse(BaseModel):
    message: str
    booking: BookingReceipt


class BookingActionResponse(BaseModel):
    message: str
    booking_id: int
    status: str
    cancellation_charge: Money = Field(default=Decimal("0.00"))
