# tests/conftest.py

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from taskflow.core.state import AppState
from taskflow.reminders.dispatchers import LocalDispatcher, RemoteDispatcher
from taskflow.reminders.engine import ReminderEngine
from taskflow.tasks.task_models import UserProfile
from taskflow.tasks.task_store import TaskStore

from .fakes import FakeClock, FakeLLMClient, FakeMessenger, FakeNotificationHost, RecordingEventSink


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap helpers.

    A SimpleNamespace rather than the real config keeps unit tests isolated
    from the environment.
    """
    return SimpleNamespace(
        app_name="TaskFlow",
        timezone="UTC",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        reminder_interval_seconds=60.0,
        reminders_enabled=True,
        desktop_notifications="console",
        remote_channel="none",
        user_name="Tester",
        notify_destination="",
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 6, 10, 9, 0, 0))


@pytest.fixture()
def messenger() -> FakeMessenger:
    return FakeMessenger()


@pytest.fixture()
def state(settings: SimpleNamespace, clock: FakeClock, messenger: FakeMessenger) -> AppState:
    """
    AppState wired with deterministic fakes.

    The SQLite store stays real: its behavior is part of what command tests check.
    """
    events = RecordingEventSink()
    st = AppState(
        settings=settings,
        task_store=TaskStore(settings.tasks_db_path),
        profile=UserProfile(name="Tester", notify_destination="chat-42"),
        clock=clock,
        events=events,
        llm=FakeLLMClient(),
        remote=RemoteDispatcher(messenger),
    )
    st.engine = ReminderEngine(
        st.task_store,
        LocalDispatcher(FakeNotificationHost()),
        st.remote,
        events,
        clock=clock,
        destination=st.destination,
    )
    return st
