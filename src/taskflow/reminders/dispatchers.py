# src/taskflow/reminders/dispatchers.py

from __future__ import annotations

"""
Notification dispatchers.

Two independent channels behind one shape:

    await dispatcher.dispatch(task, destination) -> DispatchResult

Dispatchers never raise: every failure comes back as a DispatchResult carrying
a DispatchError, so the engine can treat channels independently.
"""

import asyncio
import logging
from dataclasses import dataclass

from ..core.ports import NotificationHost, PermissionState, RemoteMessenger
from ..tasks.task_models import Task

logger = logging.getLogger(__name__)

LOCAL_CHANNEL = "desktop"
REMOTE_CHANNEL = "remote"

DESKTOP_TITLE = "📅 Task Due Today"


class DispatchError(Exception):
    """Base class for per-channel delivery failures."""

    kind = "dispatch_error"

    def __init__(self, message: str, *, channel: str) -> None:
        super().__init__(message)
        self.channel = channel


class PermissionDenied(DispatchError):
    kind = "permission_denied"


class MissingDestination(DispatchError):
    kind = "missing_destination"


class TransportError(DispatchError):
    kind = "transport_error"


@dataclass(slots=True, frozen=True)
class DispatchResult:
    channel: str
    task_id: str
    error: DispatchError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def desktop_body(task: Task) -> str:
    return f'Reminder: "{task.text}" is scheduled for today!'


def remote_body(task: Task, app_name: str = "TaskFlow") -> str:
    # Telegram Markdown (v1): *bold*.
    return f'🔔 *{app_name} Reminder*\n\nYour task *"{task.text}"* is due today! 🚀'


class LocalDispatcher:
    """Desktop notifications through a NotificationHost that needs a one-time grant."""

    channel = LOCAL_CHANNEL

    def __init__(self, host: NotificationHost) -> None:
        self._host = host

    def ensure_permission(self) -> PermissionState:
        """Ask the host once if the user has not decided yet; never re-prompt after a denial."""
        try:
            state = self._host.permission()
            if state == "default":
                state = self._host.request_permission()
                logger.info("Desktop notification permission: %s", state)
            return state
        except Exception:
            logger.exception("Desktop notification permission check failed")
            return "denied"

    async def dispatch(self, task: Task, destination: str | None = None) -> DispatchResult:
        try:
            state = self._host.permission()
        except Exception:
            logger.exception("Desktop notification permission check failed task_id=%s", task.id)
            state = "denied"

        if state != "granted":
            err = PermissionDenied(f"desktop notifications not granted ({state})", channel=self.channel)
            logger.debug("Desktop notification skipped task_id=%s: %s", task.id, err)
            return DispatchResult(channel=self.channel, task_id=task.id, error=err)

        try:
            # Hosts may block (notify-send runs a subprocess); keep the loop free.
            await asyncio.to_thread(self._host.notify, DESKTOP_TITLE, desktop_body(task))
        except Exception as e:
            logger.warning("Desktop notification failed task_id=%s: %r", task.id, e)
            err = TransportError(f"desktop notification failed: {e}", channel=self.channel)
            err.__cause__ = e
            return DispatchResult(channel=self.channel, task_id=task.id, error=err)

        logger.info("Desktop notification sent task_id=%s", task.id)
        return DispatchResult(channel=self.channel, task_id=task.id)


class RemoteDispatcher:
    """
    External chat message to a per-user destination.

    No retries here: a failed send is reported once and the engine decides what
    to do with it.
    """

    channel = REMOTE_CHANNEL

    def __init__(self, messenger: RemoteMessenger, *, app_name: str = "TaskFlow") -> None:
        self._messenger = messenger
        self._app_name = app_name

    async def send_text(self, destination: str | None, body: str, *, task_id: str = "") -> DispatchResult:
        dest = (destination or "").strip()
        if not dest:
            err = MissingDestination("no destination configured", channel=self.channel)
            return DispatchResult(channel=self.channel, task_id=task_id, error=err)

        try:
            await self._messenger.send_message(dest, body)
        except TransportError as e:
            logger.warning("Remote message failed task_id=%s dest=%s: %s", task_id, dest, e)
            return DispatchResult(channel=self.channel, task_id=task_id, error=e)
        except Exception as e:
            logger.warning("Remote message failed task_id=%s dest=%s: %r", task_id, dest, e)
            err = TransportError(f"remote send failed: {e}", channel=self.channel)
            err.__cause__ = e
            return DispatchResult(channel=self.channel, task_id=task_id, error=err)

        logger.info("Remote message sent task_id=%s dest=%s", task_id, dest)
        return DispatchResult(channel=self.channel, task_id=task_id)

    async def dispatch(self, task: Task, destination: str | None) -> DispatchResult:
        return await self.send_text(destination, remote_body(task, self._app_name), task_id=task.id)

    async def aclose(self) -> None:
        close = getattr(self._messenger, "close", None)
        if callable(close):
            await close()
