# src/taskflow/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The reminder engine and the projectors depend on Protocols instead of concrete
implementations. This keeps the task store, notification hosts and messengers
swappable and makes testing easier.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Awaitable, Literal, Protocol

ChatMessage = dict[str, str]
# OpenAI-style chat messages: {"role": "...", "content": "..."}.

PermissionState = Literal["granted", "denied", "default"]
EventLevel = Literal["info", "success", "error"]


class TaskSource(Protocol):
    """Read-only view of the task set (owned by the store)."""

    def list_tasks(self) -> list[Any]: ...


class NotificationHost(Protocol):
    """
    Local desktop notification host.

    permission() reports the current grant without prompting;
    request_permission() may prompt once and returns the resulting state.
    """

    def permission(self) -> PermissionState: ...
    def request_permission(self) -> PermissionState: ...
    def notify(self, title: str, body: str) -> None: ...


class RemoteMessenger(Protocol):
    """
    External chat channel (Telegram, Matrix, ...).

    destination is opaque to the core: a chat id, a room id, etc.
    Implementations raise on failure.
    """

    def send_message(self, destination: str, body: str) -> Awaitable[None]: ...


class Clock(Protocol):
    def now(self) -> datetime: ...


class EventSink(Protocol):
    """In-app events (toasts)."""

    def emit(self, message: str, level: EventLevel = "info") -> None: ...


class LLMClient(Protocol):
    """Streaming chat completion client (OpenAI/OpenRouter-compatible)."""

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]: ...
