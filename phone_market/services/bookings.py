from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from phone_market.core.errors import Conflict, Internal, NotFound, ValidationError
from phone_market.core.ids import gen_order_code
from phone_market.models.booking import BOOKING_STATUSES, Booking
from phone_market.services.installments import calculate_installments, validate_months
from phone_market.services.listing_status import RESERVED, SOLD
from phone_market.services.listings import get_listing_with_status
from phone_market.services.notifications import notify_admins_of_booking
from phone_market.services.telegram import TelegramClient

log = logging.getLogger(__name__)

MAX_CREATE_ATTEMPTS = 3

UNAVAILABLE_MESSAGES = {
    RESERVED: "Listing is already reserved",
    SOLD: "Listing is already sold",
}


def _is_order_code_collision(error: IntegrityError) -> bool:
    # postgres: duplicate key ... "ix_bookings_order_code"; sqlite: UNIQUE constraint failed: bookings.order_code
    message = str(error.orig).lower()
    return ("unique" in message or "duplicate" in message) and "order_code" in message


async def get_booking(db: AsyncSession, order_code: str) -> Booking:
    booking = (
        await db.execute(select(Booking).where(Booking.order_code == order_code))
    ).scalar_one_or_none()
    if booking is None:
        raise NotFound("Booking not found")
    return booking


async def create_booking(
    db: AsyncSession,
    *,
    telegram: TelegramClient,
    orders_chat_id: str,
    listing_code: int,
    full_name: str,
    phone: str,
    down_payment: Any,
    months: Any,
    user_id: int | None = None,
) -> Booking:
    """
    Book an available listing on installments.

    Eligibility is checked against the resolved listing status right before
    the insert. Two simultaneous requests can both land as "pending"; the
    admin confirming one of them is what actually takes the phone.
    """
    full_name = (full_name or "").strip()
    phone = (phone or "").strip()
    if not full_name or not phone:
        raise ValidationError("Full name and phone are required")
    validate_months(months)

    found = await get_listing_with_status(db, listing_code)
    if found is None:
        raise NotFound("Listing not found")
    listing, listing_status = found
    if listing_status in UNAVAILABLE_MESSAGES:
        raise Conflict(UNAVAILABLE_MESSAGES[listing_status])

    plan = calculate_installments(Decimal(listing.price), down_payment, months)
    code = listing.code

    collided = False
    for attempt in range(1, MAX_CREATE_ATTEMPTS + 1):
        booking = Booking(
            order_code=gen_order_code(),
            listing_code=code,
            user_id=user_id,
            full_name=full_name,
            phone=phone,
            down_payment=plan.down_payment,
            months=months,
            monthly_payment=plan.monthly,
            total_payment=plan.total,
            status="pending",
        )
        db.add(booking)
        try:
            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            if not _is_order_code_collision(e):
                raise
            collided = True
            log.warning("order code %s collided (attempt %d/%d)", booking.order_code, attempt, MAX_CREATE_ATTEMPTS)
            continue
        await db.refresh(booking)
        break
    else:
        raise Internal("Could not create booking")

    if collided:
        # rollback expired the listing loaded above
        await db.refresh(listing)

    await notify_admins_of_booking(telegram, chat_id=orders_chat_id, booking=booking, listing=listing)
    return booking


async def update_booking_status(
    db: AsyncSession,
    order_code: str,
    status: str,
    *,
    updated_by: str,
) -> Booking:
    # no transition guard: admins may move a booking between any two states
    if status not in BOOKING_STATUSES:
        raise ValidationError("Invalid booking status")

    booking = await get_booking(db, order_code)
    booking.status = status
    booking.updated_by = updated_by
    booking.updated_at = func.now()
    await db.commit()
    await db.refresh(booking)
    return booking
