from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from phone_market.core.config import settings
from phone_market.core.db import get_db
from phone_market.models.booking import Booking
from phone_market.schemas.booking import BookingCreate, BookingOut, BookingStatusUpdate
from phone_market.services.auth import AdminPrincipal, get_requester_id, require_admin
from phone_market.services.bookings import create_booking, get_booking, update_booking_status
from phone_market.services.telegram import TelegramClient, get_telegram

router = APIRouter()


def _booking_out(booking: Booking) -> BookingOut:
    return BookingOut(
        order_code=booking.order_code,
        listing_code=booking.listing_code,
        full_name=booking.full_name,
        phone=booking.phone,
        down_payment=float(booking.down_payment),
        months=booking.months,
        monthly_payment=float(booking.monthly_payment),
        total_payment=float(booking.total_payment),
        status=booking.status,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
    )


@router.post("/bookings", response_model=BookingOut, status_code=201)
async def post_booking(
    payload: BookingCreate,
    requester_id: int | None = Depends(get_requester_id),
    telegram: TelegramClient = Depends(get_telegram),
    db: AsyncSession = Depends(get_db),
) -> BookingOut:
    booking = await create_booking(
        db,
        telegram=telegram,
        orders_chat_id=settings.orders_chat_id,
        listing_code=payload.listing_code,
        full_name=payload.full_name,
        phone=payload.phone,
        down_payment=payload.down_payment,
        months=payload.months,
        user_id=requester_id,
    )
    return _booking_out(booking)


@router.get("/bookings/{order_code}", response_model=BookingOut)
async def get_booking_by_code(order_code: str, db: AsyncSession = Depends(get_db)) -> BookingOut:
    return _booking_out(await get_booking(db, order_code))


@router.patch("/bookings/{order_code}/status", response_model=BookingOut)
async def patch_booking_status(
    order_code: str,
    payload: BookingStatusUpdate,
    admin: AdminPrincipal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> BookingOut:
    booking = await update_booking_status(db, order_code, payload.status, updated_by=admin.audit_id)
    return _booking_out(booking)
