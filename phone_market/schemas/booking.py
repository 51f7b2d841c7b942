from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

BookingStatus = Literal["pending", "reserved", "sold", "canceled"]


class BookingCreate(BaseModel):
    listing_code: int
    full_name: str = Field(min_length=1, max_length=200)
    phone: str = Field(min_length=1, max_length=40)
    # anything non-numeric or below the minimum falls back to 30% of the price
    down_payment: Any = None
    months: int


class BookingStatusUpdate(BaseModel):
    status: BookingStatus


class BookingOut(BaseModel):
    order_code: str
    listing_code: int
    full_name: str
    phone: str
    down_payment: float
    months: int
    monthly_payment: float
    total_payment: float
    status: str
    created_at: datetime | None
    updated_at: datetime | None
