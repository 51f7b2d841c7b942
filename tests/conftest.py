import json
import os
import shutil
import tempfile
from decimal import Decimal
from pathlib import Path
from urllib.parse import urlencode

_TMP = Path(tempfile.mkdtemp(prefix="phone-market-tests-"))

# must be set before phone_market.core.config is imported
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{(_TMP / 'app.db').as_posix()}")
os.environ["TELEMETRY_ENABLED"] = "false"
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456:TEST-TOKEN")
os.environ.setdefault("TELEGRAM_CHANNEL_ID", "@sotvol_test")
os.environ.setdefault("TELEGRAM_ORDERS_CHAT_ID", "-100200300")
os.environ.setdefault("TELEGRAM_WEBHOOK_SECRET", "hook-secret")
os.environ.setdefault("BOOTSTRAP_ADMINS", "1001")
os.environ.setdefault("UPLOAD_DIR", str(_TMP / "uploads"))

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Import Base + all models so metadata is complete
from phone_market.models import Admin, Base, Booking, Listing  # noqa: F401

from phone_market.api.v1.endpoints.listings import get_media_limits
from phone_market.core.db import get_db
from phone_market.core.security import compute_signature, derive_secret
from phone_market.main import app
from phone_market.services.auth import AdminContext, get_admin_context
from phone_market.services.listings import MediaLimits, allocate_listing_code
from phone_market.services.telegram import TelegramError, get_telegram

BOT_TOKEN = "123456:TEST-TOKEN"
BOOTSTRAP_ADMIN_ID = 1001


def _test_db_url(tmp_path: Path) -> str:
    return os.getenv("DATABASE_URL_TEST") or f"sqlite+aiosqlite:///{(tmp_path / 'test.db').as_posix()}"


class FakeTelegram:
    """Records outbound calls; flip the fail_* flags to simulate Bot API errors."""

    def __init__(self):
        self.messages: list[dict] = []
        self.media: list[dict] = []
        self.answers: list[dict] = []
        self.fail_messages = False
        self.fail_media = False
        self.next_message_id = 77

    @property
    def configured(self) -> bool:
        return True

    async def send_message(self, chat_id, text, reply_markup=None):
        if self.fail_messages:
            raise TelegramError("Forbidden: bot was blocked by the user")
        self.messages.append({"chat_id": chat_id, "text": text, "reply_markup": reply_markup})
        return {"message_id": len(self.messages)}

    async def send_media(self, chat_id, caption, media):
        if self.fail_media:
            raise TelegramError("Bad Request: chat not found")
        self.media.append({"chat_id": chat_id, "caption": caption, "media": list(media)})
        return self.next_message_id

    async def answer_callback_query(self, callback_query_id, text=None):
        self.answers.append({"id": callback_query_id, "text": text})


@pytest.fixture(scope="session", autouse=True)
def _remove_session_tmp():
    yield
    shutil.rmtree(_TMP, ignore_errors=True)


@pytest.fixture
async def async_engine(tmp_path):
    engine = create_async_engine(_test_db_url(tmp_path), future=True)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(bind=async_engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def telegram():
    return FakeTelegram()


@pytest.fixture
def admin_ctx():
    return AdminContext(
        bot_token=BOT_TOKEN,
        bootstrap_admin_ids=frozenset({BOOTSTRAP_ADMIN_ID}),
        dev_bypass=False,
    )


@pytest.fixture
def upload_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
async def client(session_factory, telegram, admin_ctx, upload_dir):
    """
    HTTP client against the app with DB, Telegram and admin config overridden.
    Each request gets its own session, like production.
    """
    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_telegram] = lambda: telegram
    app.dependency_overrides[get_admin_context] = lambda: admin_ctx
    app.dependency_overrides[get_media_limits] = lambda: MediaLimits(
        upload_dir=upload_dir,
        max_files=6,
        max_image_bytes=1024,
        max_upload_bytes=4096,
        ffmpeg="ffmpeg-not-installed",
    )

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def init_data_for():
    """Build a signed WebApp initData string for a telegram user id."""
    def _sign(user_id: int, bot_token: str = BOT_TOKEN) -> str:
        fields = {
            "auth_date": "1717000000",
            "query_id": "AAHdF6IQAAAAAN0XohDhrOrc",
            "user": json.dumps({"id": user_id, "first_name": "Test"}, separators=(",", ":")),
        }
        fields["hash"] = compute_signature(fields, derive_secret(bot_token))
        return urlencode(fields)

    return _sign


@pytest.fixture
def make_listing(session_factory):
    async def _make(
        *,
        price: str = "1000",
        mode: str = "db_channel",
        booking_statuses: tuple[str, ...] = (),
    ) -> int:
        async with session_factory() as s:
            code = await allocate_listing_code(s)
            s.add(
                Listing(
                    code=code,
                    mode=mode,
                    model="iPhone 13",
                    name="13 Pro",
                    condition="A+",
                    storage="128GB",
                    color="Sierra Blue",
                    box="Bor",
                    battery="89%",
                    warranty="1 oy",
                    price=Decimal(price),
                    price_formatted=f"${price}",
                    exchange=True,
                    rating=5,
                    images=["/uploads/seed.jpg"],
                )
            )
            await s.flush()
            for i, booking_status in enumerate(booking_statuses):
                s.add(
                    Booking(
                        order_code=f"BR{200000 + code * 100 + i}",
                        listing_code=code,
                        full_name="Seed Customer",
                        phone="+998900000000",
                        down_payment=Decimal("300.00"),
                        months=6,
                        monthly_payment=Decimal("151.67"),
                        total_payment=Decimal("910.00"),
                        status=booking_status,
                    )
                )
            await s.commit()
            return code

    return _make


@pytest.fixture
def admin_headers():
    return {"X-Telegram-User-Id": str(BOOTSTRAP_ADMIN_ID)}
