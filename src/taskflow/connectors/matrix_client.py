# src/taskflow/connectors/matrix_client.py

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any

from nio import AsyncClient, AsyncClientConfig, LoginResponse, RoomSendError

from ..reminders.dispatchers import REMOTE_CHANNEL, TransportError

logger = logging.getLogger(__name__)


def _session_path(store_dir: Path) -> Path:
    return store_dir / "session.json"


def _load_json(path: Path) -> dict[str, Any]:
    val = json.loads(path.read_text("utf-8"))
    if isinstance(val, dict):
        return val
    raise ValueError("Expected JSON object")


def _atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps(data, ensure_ascii=False), "utf-8")
    os.replace(tmp, path)
    with contextlib.suppress(Exception):
        os.chmod(path, 0o600)


async def create_matrix_client(settings) -> AsyncClient | None:
    """
    Create a Matrix AsyncClient for outbound reminders.

    session.json keeps the access token/device id so restarts reuse the
    session instead of logging in again. It holds credentials: keep it under
    the gitignored data dir. Reminders go to unencrypted rooms only (no sync
    loop runs, so there are no room keys).
    """
    homeserver = (getattr(settings, "matrix_homeserver", "") or "").strip()
    user_id = (getattr(settings, "matrix_user_id", "") or "").strip()
    password = (getattr(settings, "matrix_password", "") or "").strip()
    store_dir = Path(getattr(settings, "matrix_store_path", Path(".local/taskflow/matrix_store")))

    if not homeserver or not user_id:
        logger.error("Matrix is not configured: set TASKFLOW_MATRIX_HOMESERVER and TASKFLOW_MATRIX_USER_ID")
        return None

    try:
        store_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("Failed to create directory %s: %r", store_dir, e)
    session_file = _session_path(store_dir)

    client = AsyncClient(
        homeserver,
        user_id,
        config=AsyncClientConfig(encryption_enabled=False, store_sync_tokens=False),
    )

    if session_file.exists():
        try:
            data = _load_json(session_file)
            access_token = data.get("access_token")
            sess_user_id = data.get("user_id")
            device_id = data.get("device_id")
            if not access_token or not sess_user_id or not device_id:
                raise ValueError("session.json is missing required fields")

            client.access_token = str(access_token)
            client.user_id = str(sess_user_id)
            client.device_id = str(device_id)
            logger.info("Matrix session restored for %s", client.user_id)
            return client
        except Exception as e:
            logger.warning("Failed to restore Matrix session.json, will try password login: %r", e)

    if not password:
        logger.error(
            "Matrix session.json not found and password is not set. "
            "Set TASKFLOW_MATRIX_PASSWORD once to bootstrap a session."
        )
        with contextlib.suppress(Exception):
            await client.close()
        return None

    device_name = f"{getattr(settings, 'app_name', 'TaskFlow')} reminders"
    resp = await client.login(password=password, device_name=device_name)
    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        with contextlib.suppress(Exception):
            await client.close()
        return None

    try:
        _atomic_write_json(
            session_file,
            {"access_token": resp.access_token, "user_id": resp.user_id, "device_id": resp.device_id},
        )
        logger.info("Matrix session saved to %s (user=%s)", session_file, resp.user_id)
    except OSError as e:
        # The session still works for this process; it just won't survive a restart.
        logger.warning("Failed to write Matrix session.json (%s): %r", session_file, e)

    return client


class MatrixMessenger:
    """
    Remote reminder channel over Matrix. Destination is a room id.

    The nio client is created lazily on first send, inside the event loop that
    sends, and reused while that loop stays the same. Console-only runs call
    asyncio.run per command, so a new loop gets a fresh client and lock.
    """

    def __init__(self, settings) -> None:
        self._settings = settings
        self._client: AsyncClient | None = None
        self._lock: asyncio.Lock | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    async def _get_client(self) -> AsyncClient:
        loop = asyncio.get_running_loop()
        if self._loop is not loop:
            stale = self._client
            self._client = None
            self._lock = asyncio.Lock()
            self._loop = loop
            if stale is not None:
                logger.debug("Event loop changed; rebuilding Matrix client")
                try:
                    await stale.close()
                except Exception as e:
                    logger.debug("Closing stale Matrix client failed: %r", e)

        async with self._lock:
            if self._client is None:
                self._client = await create_matrix_client(self._settings)
            if self._client is None:
                raise TransportError("Matrix client is not available", channel=REMOTE_CHANNEL)
            return self._client

    async def send_message(self, destination: str, body: str) -> None:
        client = await self._get_client()
        try:
            resp = await client.room_send(
                room_id=destination.strip(),
                message_type="m.room.message",
                content={"msgtype": "m.text", "body": body},
                ignore_unverified_devices=True,
            )
        except Exception as e:
            raise TransportError(f"Matrix send failed: {e!r}", channel=REMOTE_CHANNEL) from e

        if isinstance(resp, RoomSendError):
            raise TransportError(f"Matrix send failed: {resp.message}", channel=REMOTE_CHANNEL)

    async def close(self) -> None:
        if self._client is not None:
            with contextlib.suppress(Exception):
                await self._client.close()
            self._client = None
