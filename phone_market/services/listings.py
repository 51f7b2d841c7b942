from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Sequence

from fastapi import UploadFile
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from phone_market.core.errors import ExternalDependencyFailure, Internal, NotFound, ValidationError
from phone_market.models.booking import Booking
from phone_market.models.code_counter import CodeCounter
from phone_market.models.listing import Listing
from phone_market.services.installments import MAX_AMOUNT
from phone_market.services.listing_status import LISTING_STATUSES, SOLD, listing_status_expr
from phone_market.services.media import (
    MediaFile,
    cleanup_files,
    compress_video_if_needed,
    remove_public_media,
    store_upload,
)
from phone_market.services.telegram import TelegramClient, TelegramError

log = logging.getLogger(__name__)

REQUIRED_TEXT_FIELDS = ("model", "name", "condition", "storage", "color", "box", "battery")
DEFAULT_WARRANTY = "1 oy"
MAX_CODE_ATTEMPTS = 3
LISTING_COUNTER = "listing"
DEFAULT_LIMIT = 50
MAX_LIMIT = 500

BOT_HANDLE = "@sotvolnasiya_bot"
PUBLISH_WARNING = "Listing was not posted to the Telegram channel. Check that the bot is a channel admin."


@dataclass(frozen=True)
class ListingCreateResult:
    listing: Listing
    telegram_message_id: int | None
    channel_link: str | None
    warning: str | None = None


@dataclass(frozen=True)
class MediaLimits:
    upload_dir: Path
    max_files: int
    max_image_bytes: int
    max_upload_bytes: int
    ffmpeg: str = "ffmpeg"


# --- field parsing ---

def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_price(raw: Any) -> tuple[Decimal, str]:
    """Return (numeric price, "$<digits>") from free-form input such as "1 200$"."""
    numeric = re.sub(r"[^\d.]", "", _clean_text(raw))
    if not numeric:
        raise ValidationError("Invalid price")
    try:
        value = Decimal(numeric)
    except InvalidOperation as e:
        raise ValidationError("Invalid price") from e
    if not value.is_finite() or value > MAX_AMOUNT:
        raise ValidationError("Invalid price")
    return value, f"${numeric}"


def parse_rating(raw: Any) -> int:
    if isinstance(raw, bool):
        raise ValidationError("Rating must be between 1 and 5")
    try:
        value = int(_clean_text(raw))
    except ValueError as e:
        raise ValidationError("Rating must be between 1 and 5") from e
    if value < 1 or value > 5:
        raise ValidationError("Rating must be between 1 and 5")
    return value


def parse_bool(raw: Any) -> bool:
    return raw is True or _clean_text(raw).lower() == "true"


def normalize_mode(raw: Any) -> str:
    return "only_channel" if _clean_text(raw) == "only_channel" else "db_channel"


def validate_new_listing(form: dict[str, Any]) -> dict[str, Any]:
    values = {field: _clean_text(form.get(field)) for field in REQUIRED_TEXT_FIELDS}
    if not all(values.values()) or not _clean_text(form.get("price")) or not _clean_text(form.get("rating")):
        raise ValidationError("Required fields are missing")

    price, price_formatted = parse_price(form.get("price"))
    values.update(
        mode=normalize_mode(form.get("mode")),
        price=price,
        price_formatted=price_formatted,
        rating=parse_rating(form.get("rating")),
        exchange=parse_bool(form.get("exchange")) if form.get("exchange") is not None else True,
        warranty=_clean_text(form.get("warranty")) or DEFAULT_WARRANTY,
    )
    return values


# --- presentation ---

def format_listing_caption(listing: Listing) -> str:
    exchange = "Bor" if listing.exchange else "Yo'q"
    return "\n".join(
        [
            "SOTVOL UZ - Yangi elon",
            "-------------------",
            f"Kod: #{listing.code}",
            "",
            f"Model: {listing.model}",
            f"Nomi: {listing.name}",
            f"Xotira: {listing.storage}",
            f"Rang: {listing.color}",
            f"Holati: {listing.condition}",
            "",
            f"Narxi: {listing.price_formatted}",
            "",
            f"Batareya: {listing.battery}",
            f"Karobka: {listing.box}",
            f"Garantiya: {listing.warranty}",
            f"Obmen: {exchange}",
            f"Bahosi: {listing.rating}/5",
            "",
            f"Nasiyaga hisoblash va olish uchun: {BOT_HANDLE}",
        ]
    )


def channel_link(channel_id: str, message_id: int | None) -> str | None:
    if channel_id.startswith("@") and message_id:
        return f"https://t.me/{channel_id[1:]}/{message_id}"
    return None


# --- reads ---

def clamp_limit(limit: Any) -> int:
    """Non-numeric input falls back to the default page size."""
    try:
        value = int(limit)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    return min(max(value, 1), MAX_LIMIT)


async def get_listing_with_status(db: AsyncSession, code: int) -> tuple[Listing, str] | None:
    stmt = (
        select(Listing, listing_status_expr().label("listing_status"))
        .where(Listing.code == code)
        .execution_options(populate_existing=True)
    )
    row = (await db.execute(stmt)).one_or_none()
    if row is None:
        return None
    return row[0], row[1]


async def list_listings(
    db: AsyncSession,
    *,
    status: str | None = None,
    include_sold: bool = False,
    limit: Any = DEFAULT_LIMIT,
    all_rows: bool = False,
) -> list[tuple[Listing, str]]:
    status_col = listing_status_expr()
    stmt = select(Listing, status_col.label("listing_status"))

    status = (status or "").lower()
    if status in LISTING_STATUSES:
        stmt = stmt.where(status_col == status)
    elif not include_sold:
        stmt = stmt.where(status_col != SOLD)

    stmt = stmt.order_by(Listing.created_at.desc(), Listing.code.desc())
    if not all_rows:
        stmt = stmt.limit(clamp_limit(limit))

    rows = (await db.execute(stmt)).all()
    return [(row[0], row[1]) for row in rows]


async def _get_listing_or_404(db: AsyncSession, code: int) -> Listing:
    listing = (await db.execute(select(Listing).where(Listing.code == code))).scalar_one_or_none()
    if listing is None:
        raise NotFound("Listing not found")
    return listing


# --- writes ---

async def allocate_listing_code(db: AsyncSession) -> int:
    """
    Take the next listing code from the counter row, inside the caller's transaction.
    Codes of deleted listings are never handed out again.
    """
    stmt = (
        update(CodeCounter)
        .where(CodeCounter.name == LISTING_COUNTER)
        .values(value=CodeCounter.value + 1)
        .returning(CodeCounter.value)
        .execution_options(synchronize_session=False)
    )
    value = (await db.execute(stmt)).scalar_one_or_none()
    if value is None:
        # no counter row yet: start after any codes already in the table
        value = (await db.scalar(select(func.coalesce(func.max(Listing.code), 0)))) + 1
        db.add(CodeCounter(name=LISTING_COUNTER, value=value))
    return value


async def _insert_listing(db: AsyncSession, values: dict[str, Any], created_by: str) -> Listing:
    for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
        next_code = await allocate_listing_code(db)
        listing = Listing(code=next_code, created_by=created_by, updated_by=created_by, **values)
        db.add(listing)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            log.warning("listing code %d taken (attempt %d/%d)", next_code, attempt, MAX_CODE_ATTEMPTS)
            continue
        await db.refresh(listing)
        return listing
    raise Internal("Could not create listing")


async def _prepare_media(uploads: Sequence[UploadFile], limits: MediaLimits) -> list[MediaFile]:
    if not uploads:
        raise ValidationError("At least one image is required")
    if len(uploads) > limits.max_files:
        raise ValidationError(f"At most {limits.max_files} files are allowed")

    stored: list[MediaFile] = []
    try:
        for upload in uploads:
            item = await store_upload(upload, limits.upload_dir)
            stored.append(item)
            if item.kind == "photo" and item.size > limits.max_image_bytes:
                raise ValidationError("Image is too large")
    except Exception:
        cleanup_files(stored)
        raise
    return stored


async def create_listing(
    db: AsyncSession,
    *,
    telegram: TelegramClient,
    channel_id: str,
    form: dict[str, Any],
    uploads: Sequence[UploadFile],
    limits: MediaLimits,
    created_by: str,
) -> ListingCreateResult:
    """
    Persist a listing and mirror it to the channel.

    "only_channel" listings must end up published: a failed publish deletes
    the row and the stored media again. "db_channel" listings survive a
    failed publish and the result carries a warning instead.
    """
    values = validate_new_listing(form)
    stored = await _prepare_media(uploads, limits)

    try:
        outgoing = [
            await compress_video_if_needed(item, max_bytes=limits.max_upload_bytes, ffmpeg=limits.ffmpeg)
            for item in stored
        ]
        values["images"] = [item.public_url for item in stored]
        listing = await _insert_listing(db, values, created_by)
    except Exception:
        cleanup_files(stored)
        raise

    code = listing.code
    message_id = None
    warning = None
    try:
        if not channel_id:
            raise TelegramError("Telegram channel is not configured")
        message_id = await telegram.send_media(channel_id, format_listing_caption(listing), outgoing)
    except TelegramError as e:
        log.exception("listing #%d: channel publish failed", code)
        if listing.mode == "only_channel":
            await db.delete(listing)
            await db.commit()
            cleanup_files(stored)
            log.warning("listing #%d: removed after failed publish (only_channel)", code)
            raise ExternalDependencyFailure(f"Listing was not posted to the Telegram channel. {e}") from e
        warning = PUBLISH_WARNING

    if message_id:
        listing.telegram_message_id = message_id
        await db.commit()
        await db.refresh(listing)

    return ListingCreateResult(
        listing=listing,
        telegram_message_id=message_id,
        channel_link=channel_link(channel_id, message_id),
        warning=warning,
    )


async def update_listing(
    db: AsyncSession,
    code: int,
    changes: dict[str, Any],
    *,
    updated_by: str,
) -> tuple[Listing, str]:
    listing = await _get_listing_or_404(db, code)

    values: dict[str, Any] = {}
    for field in (*REQUIRED_TEXT_FIELDS, "warranty"):
        if field in changes:
            values[field] = _clean_text(changes[field])
    if any(not values.get(field, getattr(listing, field)) for field in REQUIRED_TEXT_FIELDS):
        raise ValidationError("Required fields are missing")
    if "warranty" in values and not values["warranty"]:
        values["warranty"] = DEFAULT_WARRANTY

    if "price" in changes:
        values["price"], values["price_formatted"] = parse_price(changes["price"])
    if "exchange" in changes:
        values["exchange"] = parse_bool(changes["exchange"])
    if "rating" in changes:
        values["rating"] = parse_rating(changes["rating"])

    for field, value in values.items():
        setattr(listing, field, value)
    listing.updated_by = updated_by
    listing.updated_at = func.now()
    await db.commit()

    found = await get_listing_with_status(db, code)
    if found is None:
        raise NotFound("Listing not found")
    return found


async def delete_listing(db: AsyncSession, code: int, *, upload_dir: Path) -> None:
    listing = await _get_listing_or_404(db, code)
    images = list(listing.images or [])

    # bookings cascade with the listing
    await db.execute(delete(Booking).where(Booking.listing_code == code))
    await db.delete(listing)
    await db.commit()

    remove_public_media(images, upload_dir)
