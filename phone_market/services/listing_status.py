from __future__ import annotations

from typing import Iterable

from sqlalchemy import and_, case, select

from phone_market.models.booking import Booking
from phone_market.models.listing import Listing

AVAILABLE = "available"
RESERVED = "reserved"
SOLD = "sold"

LISTING_STATUSES = (AVAILABLE, RESERVED, SOLD)

# (booking status, resulting listing status), highest precedence first
STATUS_PRECEDENCE: tuple[tuple[str, str], ...] = (
    ("sold", SOLD),
    ("reserved", RESERVED),
)


def resolve_listing_status(booking_statuses: Iterable[str]) -> str:
    present = set(booking_statuses)
    for booking_status, listing_status in STATUS_PRECEDENCE:
        if booking_status in present:
            return listing_status
    return AVAILABLE


def listing_status_expr():
    """SQL twin of resolve_listing_status, correlated to the outer Listing row."""
    whens = [
        (
            select(Booking.id)
            .where(and_(Booking.listing_code == Listing.code, Booking.status == booking_status))
            .correlate(Listing)
            .exists(),
            listing_status,
        )
        for booking_status, listing_status in STATUS_PRECEDENCE
    ]
    return case(*whens, else_=AVAILABLE)
