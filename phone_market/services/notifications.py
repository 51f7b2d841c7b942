from __future__ import annotations

import logging

from phone_market.models.booking import Booking
from phone_market.models.listing import Listing
from phone_market.services.telegram import TelegramClient

log = logging.getLogger(__name__)

CALLBACK_PREFIX = "booking"


def booking_callback_data(order_code: str, status: str) -> str:
    return f"{CALLBACK_PREFIX}:{order_code}:{status}"


def parse_booking_callback(data: str | None) -> tuple[str, str] | None:
    parts = (data or "").split(":")
    if len(parts) != 3 or parts[0] != CALLBACK_PREFIX or not parts[1] or not parts[2]:
        return None
    return parts[1], parts[2]


def booking_actions(order_code: str) -> dict:
    return {
        "inline_keyboard": [
            [
                {"text": "Tasdiqlash", "callback_data": booking_callback_data(order_code, "reserved")},
                {"text": "Bekor qilish", "callback_data": booking_callback_data(order_code, "canceled")},
            ]
        ]
    }


def format_booking_message(booking: Booking, listing: Listing) -> str:
    return "\n".join(
        [
            "Yangi bron:",
            f"Buyurtma kodi: {booking.order_code}",
            f"Telefon kodi: {listing.code}",
            f"Model/Nomi: {listing.model} {listing.name}",
            f"Narxi: {listing.price_formatted}",
            f"Boshlang'ich to'lov: ${booking.down_payment}",
            f"Oylar: {booking.months}",
            f"Oyiga: ${booking.monthly_payment}",
            f"Jami: ${booking.total_payment}",
            f"Ism: {booking.full_name}",
            f"Telefon: {booking.phone}",
            f"Status: {booking.status}",
        ]
    )


async def notify_admins_of_booking(
    telegram: TelegramClient,
    *,
    chat_id: str,
    booking: Booking,
    listing: Listing,
) -> bool:
    """Best effort: returns False instead of raising when delivery fails."""
    if not chat_id:
        log.info("booking %s: no orders chat configured, skipping notification", booking.order_code)
        return False
    try:
        await telegram.send_message(
            chat_id,
            format_booking_message(booking, listing),
            reply_markup=booking_actions(booking.order_code),
        )
    except Exception:
        log.exception("booking %s: admin notification failed", booking.order_code)
        return False
    return True
