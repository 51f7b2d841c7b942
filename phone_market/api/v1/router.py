from fastapi import APIRouter

from phone_market.api.v1.endpoints.health import router as health_router
from phone_market.api.v1.endpoints.auth import router as auth_router
from phone_market.api.v1.endpoints.listings import router as listings_router
from phone_market.api.v1.endpoints.bookings import router as bookings_router
from phone_market.api.v1.endpoints.telegram import router as telegram_router


router = APIRouter(prefix="/v1")
router.include_router(health_router, tags=["health"])
router.include_router(auth_router, tags=["auth"])
router.include_router(listings_router, tags=["listings"])
router.include_router(bookings_router, tags=["bookings"])
router.include_router(telegram_router, tags=["telegram"])
