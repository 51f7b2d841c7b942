from datetime import datetime
from typing import Any

from pydantic import BaseModel


class ListingUpdate(BaseModel):
    # loose types on purpose: values go through the same parsers as the multipart form
    model: str | None = None
    name: str | None = None
    condition: str | None = None
    storage: str | None = None
    color: str | None = None
    box: str | None = None
    battery: str | None = None
    warranty: str | None = None
    price: Any = None
    exchange: Any = None
    rating: Any = None


class ListingOut(BaseModel):
    code: int
    mode: str
    model: str
    name: str
    condition: str
    storage: str
    color: str
    box: str
    battery: str
    warranty: str
    price: float
    price_formatted: str
    exchange: bool
    rating: int
    status: str
    images: list[str]
    telegram_message_id: int | None
    channel_link: str | None = None
    created_at: datetime | None


class ListingCreateOut(BaseModel):
    success: bool = True
    code: int
    telegram_message_id: int | None
    channel_link: str | None
    warning: str | None = None


class SuccessOut(BaseModel):
    success: bool = True
