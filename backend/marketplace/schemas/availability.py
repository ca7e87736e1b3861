"""
Pydantic schemas for availability slots.
"""

import datetime as dt
from typing import Literal

from pydantic import BaseModel, Field


class SlotEntry(BaseModel):
    date: dt.date
    time: dt.time
    status: Literal["available", "booked"] = "available"


class SlotUpsertRequest(BaseModel):
    slots: list[SlotEntry] = Field(..., max_length=1000)


class SlotUpsertResponse(BaseModel):
    message: str
    count: int


class SlotResponse(BaseModel):
    id: int
    date: dt.date
    time: dt.time
    status: str

    model_config = {"from_attributes": True}
