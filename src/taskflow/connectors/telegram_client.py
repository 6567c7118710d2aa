# src/taskflow/connectors/telegram_client.py

"""
Telegram Bot API messenger (remote reminder channel).

Destination is the user's chat id. The httpx client is created lazily on the
event loop that sends (the reminder loop in the CLI).
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from ..reminders.dispatchers import REMOTE_CHANNEL, TransportError

logger = logging.getLogger(__name__)


class TelegramMessenger:
    def __init__(
        self,
        token: str,
        *,
        api_base: str = "https://api.telegram.org",
        timeout_seconds: float = 15.0,
        parse_mode: str | None = "Markdown",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = (token or "").strip()
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout_seconds
        self._parse_mode = parse_mode
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def configured(self) -> bool:
        return bool(self._token)

    async def _get_client(self) -> httpx.AsyncClient:
        # A client is tied to the loop that created it (console-only runs use asyncio.run per call).
        loop = asyncio.get_running_loop()
        if self._client is not None and self._loop is not loop:
            stale, self._client = self._client, None
            logger.debug("Event loop changed; closing stale Telegram HTTP client")
            try:
                await stale.aclose()
            except Exception as e:
                logger.debug("Closing stale Telegram HTTP client failed: %r", e)
        if self._client is None:
            self._loop = loop
            self._client = httpx.AsyncClient(
                base_url=self._api_base,
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._client

    async def send_message(self, destination: str, body: str) -> None:
        if not self._token:
            raise TransportError("Telegram bot token is not configured", channel=REMOTE_CHANNEL)

        payload: dict[str, str] = {"chat_id": destination.strip(), "text": body}
        if self._parse_mode:
            payload["parse_mode"] = self._parse_mode

        try:
            client = await self._get_client()
            resp = await client.post(f"/bot{self._token}/sendMessage", json=payload)
        except httpx.HTTPError as e:
            raise TransportError(f"Telegram request failed: {e!r}", channel=REMOTE_CHANNEL) from e

        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError(
                f"Telegram returned a non-JSON response (HTTP {resp.status_code})", channel=REMOTE_CHANNEL
            ) from e

        # Bot API errors come back as {"ok": false, "description": ...} with a 4xx status.
        if not isinstance(data, dict) or not data.get("ok"):
            desc = data.get("description") if isinstance(data, dict) else None
            raise TransportError(
                f"Telegram API error (HTTP {resp.status_code}): {desc or 'unknown'}", channel=REMOTE_CHANNEL
            )

        logger.debug("Telegram message delivered chat_id=%s", destination)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
