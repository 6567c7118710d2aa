# src/taskflow/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .ports import Clock, EventSink, LLMClient

if TYPE_CHECKING:
    from ..reminders.dispatchers import RemoteDispatcher
    from ..reminders.engine import ReminderEngine
    from ..reminders.runner import ReminderRunner
    from ..tasks.task_models import UserProfile
    from ..tasks.task_store import TaskStore


@dataclass
class AppState:
    # Settings object (real Settings or a test SimpleNamespace).
    settings: Any

    task_store: TaskStore
    profile: UserProfile
    clock: Clock
    events: EventSink
    llm: LLMClient

    engine: ReminderEngine | None = None
    remote: RemoteDispatcher | None = None
    runner: ReminderRunner | None = None

    # Guards profile edits from the console against reads on the reminder thread.
    lock: threading.Lock = field(default_factory=threading.Lock)

    def destination(self) -> str | None:
        with self.lock:
            return self.profile.notify_destination
