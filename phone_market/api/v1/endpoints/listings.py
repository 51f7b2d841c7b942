from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from phone_market.core.config import settings
from phone_market.core.db import get_db
from phone_market.core.errors import NotFound
from phone_market.models.listing import Listing
from phone_market.schemas.listing import ListingCreateOut, ListingOut, ListingUpdate, SuccessOut
from phone_market.services.auth import AdminPrincipal, require_admin
from phone_market.services.listings import (
    MediaLimits,
    channel_link,
    create_listing,
    delete_listing,
    get_listing_with_status,
    list_listings,
    update_listing,
)
from phone_market.services.telegram import TelegramClient, get_telegram

router = APIRouter()


def _listing_out(listing: Listing, status: str) -> ListingOut:
    return ListingOut(
        code=listing.code,
        mode=listing.mode,
        model=listing.model,
        name=listing.name,
        condition=listing.condition,
        storage=listing.storage,
        color=listing.color,
        box=listing.box,
        battery=listing.battery,
        warranty=listing.warranty,
        price=float(listing.price),
        price_formatted=listing.price_formatted,
        exchange=listing.exchange,
        rating=listing.rating,
        status=status or "available",
        images=list(listing.images or []),
        telegram_message_id=listing.telegram_message_id,
        channel_link=channel_link(settings.telegram_channel_id, listing.telegram_message_id),
        created_at=listing.created_at,
    )


def get_media_limits() -> MediaLimits:
    return MediaLimits(
        upload_dir=settings.upload_dir,
        max_files=settings.max_files,
        max_image_bytes=settings.max_image_bytes,
        max_upload_bytes=settings.telegram_max_upload_bytes,
        ffmpeg=settings.ffmpeg_binary,
    )


@router.get("/listings", response_model=list[ListingOut])
async def get_listings(
    status: str | None = Query(default=None),
    include_sold: bool = Query(default=False),
    limit: str | None = Query(default=None),
    all: bool = Query(default=False),
    db: AsyncSession = Depends(get_db),
) -> list[ListingOut]:
    rows = await list_listings(db, status=status, include_sold=include_sold, limit=limit, all_rows=all)
    return [_listing_out(listing, listing_status) for listing, listing_status in rows]


@router.get("/listings/{code}", response_model=ListingOut)
async def get_listing(code: int, db: AsyncSession = Depends(get_db)) -> ListingOut:
    found = await get_listing_with_status(db, code)
    if found is None:
        raise NotFound("Listing not found")
    return _listing_out(*found)


@router.post("/listings", response_model=ListingCreateOut, status_code=201)
async def post_listing(
    mode: str | None = Form(default=None),
    model: str | None = Form(default=None),
    name: str | None = Form(default=None),
    condition: str | None = Form(default=None),
    storage: str | None = Form(default=None),
    color: str | None = Form(default=None),
    box: str | None = Form(default=None),
    price: str | None = Form(default=None),
    battery: str | None = Form(default=None),
    exchange: str | None = Form(default=None),
    warranty: str | None = Form(default=None),
    rating: str | None = Form(default=None),
    files: list[UploadFile] | None = File(default=None),
    admin: AdminPrincipal = Depends(require_admin),
    telegram: TelegramClient = Depends(get_telegram),
    limits: MediaLimits = Depends(get_media_limits),
    db: AsyncSession = Depends(get_db),
) -> ListingCreateOut:
    form = {
        "mode": mode,
        "model": model,
        "name": name,
        "condition": condition,
        "storage": storage,
        "color": color,
        "box": box,
        "price": price,
        "battery": battery,
        "exchange": exchange,
        "warranty": warranty,
        "rating": rating,
    }
    result = await create_listing(
        db,
        telegram=telegram,
        channel_id=settings.telegram_channel_id,
        form=form,
        uploads=files or [],
        limits=limits,
        created_by=admin.audit_id,
    )
    return ListingCreateOut(
        code=result.listing.code,
        telegram_message_id=result.telegram_message_id,
        channel_link=result.channel_link,
        warning=result.warning,
    )


@router.patch("/listings/{code}", response_model=ListingOut)
async def patch_listing(
    code: int,
    payload: ListingUpdate,
    admin: AdminPrincipal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> ListingOut:
    listing, listing_status = await update_listing(
        db, code, payload.model_dump(exclude_unset=True), updated_by=admin.audit_id
    )
    return _listing_out(listing, listing_status)


@router.delete("/listings/{code}", response_model=SuccessOut)
async def remove_listing(
    code: int,
    admin: AdminPrincipal = Depends(require_admin),
    limits: MediaLimits = Depends(get_media_limits),
    db: AsyncSession = Depends(get_db),
) -> SuccessOut:
    await delete_listing(db, code, upload_dir=limits.upload_dir)
    return SuccessOut()
