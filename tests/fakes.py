# tests/fakes.py

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from taskflow.core.ports import ChatMessage, EventLevel, PermissionState
from taskflow.tasks.task_models import Priority, Task, TaskStatus


def make_task(
    task_id: str,
    *,
    text: str | None = None,
    status: str = "todo",
    priority: str = "medium",
    start_date: str | None = None,
    due_date: str | None = None,
) -> Task:
    return Task(
        id=task_id,
        text=text or f"task {task_id}",
        status=TaskStatus(status),
        priority=Priority(priority),
        start_date=start_date,
        due_date=due_date,
    )


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current


class FakeTaskSource:
    def __init__(self, tasks: list[Task] | None = None) -> None:
        self.tasks = list(tasks or [])
        self.calls = 0

    def list_tasks(self) -> list[Task]:
        self.calls += 1
        return list(self.tasks)


class FakeNotificationHost:
    """
    Records notifications. `state` is what permission() reports;
    request_permission() resolves "default" to `grant_to`.
    """

    def __init__(self, state: PermissionState = "granted", *, grant_to: PermissionState = "granted") -> None:
        self.state: PermissionState = state
        self.grant_to: PermissionState = grant_to
        self.requests = 0
        self.shown: list[tuple[str, str]] = []
        self.fail = False

    def permission(self) -> PermissionState:
        return self.state

    def request_permission(self) -> PermissionState:
        self.requests += 1
        if self.state == "default":
            self.state = self.grant_to
        return self.state

    def notify(self, title: str, body: str) -> None:
        if self.fail:
            raise RuntimeError("host exploded")
        self.shown.append((title, body))


@dataclass(slots=True)
class SentMessage:
    destination: str
    body: str


@dataclass
class FakeMessenger:
    """RemoteMessenger that records sends; optionally raises or blocks."""

    sent: list[SentMessage] = field(default_factory=list)
    error: Exception | None = None
    gate: asyncio.Event | None = None
    closed: bool = False

    async def send_message(self, destination: str, body: str) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        self.sent.append(SentMessage(destination=destination, body=body))

    async def close(self) -> None:
        self.closed = True


class RecordingEventSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, EventLevel]] = []

    def emit(self, message: str, level: EventLevel = "info") -> None:
        self.events.append((message, level))


class FakeLLMClient:
    """
    Deterministic LLM client for unit tests.

    - Captures calls for assertions
    - Yields a predefined text as a single chunk (or raises)
    """

    def __init__(self, next_text: str = "ok", error: Exception | None = None) -> None:
        self.next_text = next_text
        self.error = error
        self.calls: list[tuple[list[ChatMessage], str]] = []

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        self.calls.append((messages, system_prompt))
        if self.error is not None:
            raise self.error
        yield self.next_text
