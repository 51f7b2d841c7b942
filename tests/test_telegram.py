import json

import httpx
import pytest
from sqlalchemy import select

from phone_market.models.booking import Booking
from phone_market.services.media import MediaFile
from phone_market.services.notifications import (
    booking_actions,
    notify_admins_of_booking,
    parse_booking_callback,
)
from phone_market.services.telegram import TelegramClient, TelegramError

WEBHOOK_HEADERS = {"X-Telegram-Bot-Api-Secret-Token": "hook-secret"}


def _client(handler) -> TelegramClient:
    return TelegramClient(bot_token="42:ABC", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_send_message_posts_json():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 9}})

    tg = _client(handler)
    result = await tg.send_message("-100", "hello", reply_markup=booking_actions("BR123456"))
    await tg.aclose()

    assert result == {"message_id": 9}
    assert seen[0].url.path == "/bot42:ABC/sendMessage"
    body = json.loads(seen[0].content)
    assert body["chat_id"] == "-100"
    assert body["reply_markup"]["inline_keyboard"][0][0]["callback_data"] == "booking:BR123456:reserved"


@pytest.mark.asyncio
async def test_single_photo_uses_send_photo(tmp_path):
    photo = tmp_path / "a.jpg"
    photo.write_bytes(b"jpeg-bytes")
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 31}})

    tg = _client(handler)
    message_id = await tg.send_media("@shop", "caption", [MediaFile(photo, "a.jpg", "photo", 10)])
    await tg.aclose()

    assert message_id == 31
    assert seen[0].url.path.endswith("/sendPhoto")
    assert b'name="photo"; filename="a.jpg"' in seen[0].content
    assert b"jpeg-bytes" in seen[0].content


@pytest.mark.asyncio
async def test_several_files_use_media_group(tmp_path):
    items = []
    for i, kind in enumerate(["photo", "video", "photo"]):
        path = tmp_path / f"{i}.bin"
        path.write_bytes(b"data")
        items.append(MediaFile(path, f"{i}.bin", kind, 4))
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True, "result": [{"message_id": 50}, {"message_id": 51}]})

    tg = _client(handler)
    message_id = await tg.send_media("@shop", "caption here", items)
    await tg.aclose()

    assert message_id == 50
    request = seen[0]
    assert request.url.path.endswith("/sendMediaGroup")
    assert b"attach://file0" in request.content
    assert b'name="file2"' in request.content
    assert b'"type": "video"' in request.content
    assert request.content.count(b"caption here") == 1


@pytest.mark.asyncio
async def test_api_error_raises():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"ok": False, "description": "Bad Request: chat not found"})

    tg = _client(handler)
    with pytest.raises(TelegramError, match="chat not found"):
        await tg.send_message("-1", "x")
    await tg.aclose()


@pytest.mark.asyncio
async def test_transport_error_and_non_json_raise():
    def broken(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    tg = _client(broken)
    with pytest.raises(TelegramError, match="sendMessage"):
        await tg.send_message("-1", "x")
    await tg.aclose()

    tg = _client(lambda request: httpx.Response(502, text="<html>bad gateway</html>"))
    with pytest.raises(TelegramError, match="HTTP 502"):
        await tg.send_message("-1", "x")
    await tg.aclose()


@pytest.mark.asyncio
async def test_unconfigured_client_raises():
    tg = TelegramClient(bot_token="", transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    assert tg.configured is False
    with pytest.raises(TelegramError):
        await tg.send_message("-1", "x")
    await tg.aclose()


def test_parse_booking_callback():
    assert parse_booking_callback("booking:BR123456:reserved") == ("BR123456", "reserved")
    assert parse_booking_callback("booking:BR123456") is None
    assert parse_booking_callback("other:BR1:sold") is None
    assert parse_booking_callback(None) is None


@pytest.mark.asyncio
async def test_notify_without_chat_is_skipped(telegram):
    booking = Booking(order_code="BR111111", status="pending")
    assert await notify_admins_of_booking(telegram, chat_id="", booking=booking, listing=None) is False
    assert telegram.messages == []


async def _pending_booking(client, make_listing) -> tuple[int, str]:
    code = await make_listing()
    r = await client.post(
        "/v1/bookings",
        json={"listing_code": code, "full_name": "Dilnoza", "phone": "+998911112233", "months": 4},
    )
    return code, r.json()["order_code"]


def _callback(order_code, status, sender_id):
    return {
        "update_id": 1,
        "callback_query": {
            "id": "cb-1",
            "from": {"id": sender_id, "is_bot": False, "first_name": "Admin"},
            "data": f"booking:{order_code}:{status}",
        },
    }


async def _status(db_session, order_code):
    return (
        await db_session.execute(select(Booking.status).where(Booking.order_code == order_code))
    ).scalar_one()


@pytest.mark.asyncio
async def test_webhook_admin_confirms_booking(client, make_listing, telegram, db_session):
    code, order_code = await _pending_booking(client, make_listing)

    r = await client.post("/v1/telegram/webhook", json=_callback(order_code, "reserved", 1001), headers=WEBHOOK_HEADERS)
    assert r.status_code == 200
    assert r.json() == {"ok": True}

    assert await _status(db_session, order_code) == "reserved"
    assert telegram.answers == [{"id": "cb-1", "text": "Bron tasdiqlandi"}]

    r = await client.get(f"/v1/listings/{code}")
    assert r.json()["status"] == "reserved"


@pytest.mark.asyncio
async def test_webhook_ignores_non_admins(client, make_listing, telegram, db_session):
    _, order_code = await _pending_booking(client, make_listing)

    r = await client.post("/v1/telegram/webhook", json=_callback(order_code, "canceled", 42), headers=WEBHOOK_HEADERS)
    assert r.status_code == 200
    assert await _status(db_session, order_code) == "pending"
    assert telegram.answers == [{"id": "cb-1", "text": "Ruxsat yo'q"}]


@pytest.mark.asyncio
async def test_webhook_unknown_booking_is_answered(client, telegram):
    r = await client.post("/v1/telegram/webhook", json=_callback("BR000001", "reserved", 1001), headers=WEBHOOK_HEADERS)
    assert r.status_code == 200
    assert telegram.answers == [{"id": "cb-1", "text": "Booking not found"}]


@pytest.mark.asyncio
async def test_webhook_secret_is_checked(client, telegram):
    r = await client.post("/v1/telegram/webhook", json={"update_id": 2})
    assert r.status_code == 401

    r = await client.post(
        "/v1/telegram/webhook", json={"update_id": 2}, headers={"X-Telegram-Bot-Api-Secret-Token": "wrong"}
    )
    assert r.status_code == 401

    r = await client.post("/v1/telegram/webhook", json={"update_id": 2, "message": {}}, headers=WEBHOOK_HEADERS)
    assert r.status_code == 200
    assert telegram.answers == []


@pytest.mark.asyncio
async def test_unreadable_media_raises_telegram_error(tmp_path):
    seen = []
    tg = _client(lambda request: seen.append(request) or httpx.Response(200, json={"ok": True, "result": {}}))
    missing = MediaFile(tmp_path / "gone.jpg", "gone.jpg", "photo", 10)

    with pytest.raises(TelegramError, match="cannot read gone.jpg"):
        await tg.send_media("@shop", "caption", [missing])
    await tg.aclose()
    assert seen == []
