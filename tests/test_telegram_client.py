# tests/test_telegram_client.py

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from taskflow.connectors.telegram_client import TelegramMessenger
from taskflow.reminders.dispatchers import RemoteDispatcher, TransportError

from .fakes import make_task


def _messenger(handler, token: str = "123:abc") -> TelegramMessenger:
    return TelegramMessenger(token, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_send_message_posts_markdown_payload() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 1}})

    messenger = _messenger(handler)
    await messenger.send_message(" 42 ", "*hello*")
    await messenger.close()

    (req,) = seen
    assert req.url.path == "/bot123:abc/sendMessage"
    assert json.loads(req.content) == {"chat_id": "42", "text": "*hello*", "parse_mode": "Markdown"}


@pytest.mark.asyncio
async def test_api_error_raises_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"ok": False, "description": "Bad Request: chat not found"})

    messenger = _messenger(handler)
    with pytest.raises(TransportError, match="chat not found"):
        await messenger.send_message("42", "hi")
    await messenger.close()


@pytest.mark.asyncio
async def test_network_error_is_reported_through_dispatcher() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    messenger = _messenger(handler)
    result = await RemoteDispatcher(messenger).dispatch(make_task("t1"), "42")
    await messenger.close()

    assert isinstance(result.error, TransportError)
    assert "connection refused" in str(result.error)


@pytest.mark.asyncio
async def test_missing_token_fails_without_http() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    messenger = _messenger(handler, token="")
    assert not messenger.configured
    with pytest.raises(TransportError):
        await messenger.send_message("42", "hi")


def test_stale_client_is_closed_when_the_loop_changes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": True})

    messenger = _messenger(handler)
    clients: list[httpx.AsyncClient] = []

    async def send(text: str) -> None:
        await messenger.send_message("42", text)
        clients.append(messenger._client)

    asyncio.run(send("one"))
    asyncio.run(send("two"))

    first, second = clients
    assert first is not second
    assert first.is_closed
    assert not second.is_closed
    asyncio.run(messenger.close())
