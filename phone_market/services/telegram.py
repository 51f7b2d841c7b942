from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Sequence

import httpx

from phone_market.core.config import settings
from phone_market.services.media import MediaFile

log = logging.getLogger(__name__)


class TelegramError(Exception):
    pass


def _read_media(path: Path) -> bytes:
    return path.read_bytes()


async def _load_media(item: MediaFile) -> bytes:
    try:
        return await asyncio.to_thread(_read_media, item.path)
    except OSError as e:
        raise TelegramError(f"cannot read {item.path.name}: {e}") from e


def _cap_text(s: str, *, max_chars: int = 2_000) -> str:
    if len(s) <= max_chars:
        return s
    return s[:max_chars] + f"...(truncated, {len(s)} chars)"


class TelegramClient:
    """
    Thin Bot API wrapper.

    - One AsyncClient per process (connection pooling).
    - No retries; callers decide whether a failure is fatal.
    - Every failure surfaces as TelegramError.
    """

    def __init__(
        self,
        *,
        bot_token: str,
        api_base: str = "https://api.telegram.org",
        timeout_seconds: float = 20.0,
        media_timeout_seconds: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._bot_token = bot_token
        self._base_url = f"{api_base.rstrip('/')}/bot{bot_token}"
        self._media_timeout = httpx.Timeout(media_timeout_seconds)
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds), transport=transport)

    @property
    def configured(self) -> bool:
        return bool(self._bot_token)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _call(
        self,
        method: str,
        *,
        json_body: dict[str, Any] | None = None,
        data: dict[str, str] | None = None,
        files: dict[str, tuple[str, bytes]] | None = None,
        timeout: httpx.Timeout | None = None,
    ) -> Any:
        if not self.configured:
            raise TelegramError("Telegram bot token is not configured")

        kwargs: dict[str, Any] = {}
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            resp = await self._client.post(
                f"{self._base_url}/{method}", json=json_body, data=data, files=files, **kwargs
            )
        except httpx.TimeoutException as e:
            raise TelegramError(f"{method}: timeout") from e
        except httpx.RequestError as e:
            # DNS errors, connection refused, TLS, etc.
            raise TelegramError(f"{method}: {e}") from e

        try:
            payload = resp.json()
        except ValueError as e:
            raise TelegramError(f"{method}: HTTP {resp.status_code} {_cap_text(resp.text)}") from e

        if not isinstance(payload, dict) or not payload.get("ok"):
            description = payload.get("description") if isinstance(payload, dict) else None
            log.error("telegram %s failed: %s", method, _cap_text(json.dumps(payload, ensure_ascii=False)))
            raise TelegramError(description or f"{method}: HTTP {resp.status_code}")

        return payload.get("result")

    async def send_message(self, chat_id: str, text: str, reply_markup: dict[str, Any] | None = None) -> dict:
        body: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_markup:
            body["reply_markup"] = reply_markup
        return await self._call("sendMessage", json_body=body)

    async def answer_callback_query(self, callback_query_id: str, text: str | None = None) -> None:
        body: dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            body["text"] = text
        await self._call("answerCallbackQuery", json_body=body)

    async def send_media(self, chat_id: str, caption: str, media: Sequence[MediaFile]) -> int | None:
        """
        Post photos/videos with a caption on the first item.
        Returns the message_id of the first message.
        """
        if not media:
            raise TelegramError("No media to send")

        if len(media) == 1:
            item = media[0]
            method = "sendVideo" if item.kind == "video" else "sendPhoto"
            result = await self._call(
                method,
                data={"chat_id": str(chat_id), "caption": caption},
                files={item.kind: (item.filename, await _load_media(item))},
                timeout=self._media_timeout,
            )
            return (result or {}).get("message_id")

        entries = []
        files: dict[str, tuple[str, bytes]] = {}
        for index, item in enumerate(media):
            attach = f"file{index}"
            entry: dict[str, Any] = {"type": item.kind, "media": f"attach://{attach}"}
            if index == 0:
                entry["caption"] = caption
            entries.append(entry)
            files[attach] = (item.filename, await _load_media(item))

        result = await self._call(
            "sendMediaGroup",
            data={"chat_id": str(chat_id), "media": json.dumps(entries)},
            files=files,
            timeout=self._media_timeout,
        )
        if isinstance(result, list) and result:
            return result[0].get("message_id")
        return None


_client: TelegramClient | None = None


def get_telegram() -> TelegramClient:
    global _client
    if _client is None:
        _client = TelegramClient(
            bot_token=settings.telegram_bot_token.get_secret_value(),
            api_base=settings.telegram_api_base,
            timeout_seconds=settings.telegram_timeout_seconds,
            media_timeout_seconds=settings.telegram_media_timeout_seconds,
        )
    return _client


async def close_telegram() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
