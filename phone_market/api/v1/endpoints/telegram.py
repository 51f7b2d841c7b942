import hmac
import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from phone_market.core.config import settings
from phone_market.core.db import get_db
from phone_market.core.errors import AppError, NotFound, Unauthorized
from phone_market.services.auth import AdminContext, get_admin_context, is_admin
from phone_market.services.bookings import update_booking_status
from phone_market.services.notifications import parse_booking_callback
from phone_market.services.telegram import TelegramClient, TelegramError, get_telegram

log = logging.getLogger(__name__)
router = APIRouter()

STATUS_REPLIES = {
    "reserved": "Bron tasdiqlandi",
    "canceled": "Bron bekor qilindi",
    "sold": "Sotildi",
    "pending": "Kutilmoqda",
}


def require_webhook_secret(x_telegram_bot_api_secret_token: str | None = Header(default=None)) -> None:
    if not settings.telegram_webhook_secret:
        raise NotFound("Not found")
    if not x_telegram_bot_api_secret_token or not hmac.compare_digest(
        x_telegram_bot_api_secret_token, settings.telegram_webhook_secret
    ):
        raise Unauthorized("Invalid webhook secret")


async def _answer(telegram: TelegramClient, callback_id: str, text: str) -> None:
    try:
        await telegram.answer_callback_query(callback_id, text)
    except TelegramError:
        log.exception("answerCallbackQuery failed")


@router.post("/telegram/webhook", dependencies=[Depends(require_webhook_secret)])
async def telegram_webhook(
    update: dict[str, Any] = Body(...),
    ctx: AdminContext = Depends(get_admin_context),
    telegram: TelegramClient = Depends(get_telegram),
    db: AsyncSession = Depends(get_db),
) -> dict:
    callback = update.get("callback_query")
    if not isinstance(callback, dict):
        return {"ok": True}

    callback_id = str(callback.get("id") or "")
    sender = callback.get("from") or {}
    sender_id = sender.get("id") if isinstance(sender, dict) else None

    parsed = parse_booking_callback(callback.get("data"))
    if parsed is None:
        return {"ok": True}
    order_code, status = parsed

    if not isinstance(sender_id, int) or not await is_admin(db, ctx, sender_id):
        await _answer(telegram, callback_id, "Ruxsat yo'q")
        return {"ok": True}

    try:
        booking = await update_booking_status(db, order_code, status, updated_by=str(sender_id))
    except AppError as e:
        await _answer(telegram, callback_id, e.message)
        return {"ok": True}

    log.info("booking %s set to %s by %s via callback", booking.order_code, booking.status, sender_id)
    await _answer(telegram, callback_id, STATUS_REPLIES.get(booking.status, booking.status))
    return {"ok": True}
