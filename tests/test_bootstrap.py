# tests/test_bootstrap.py

from __future__ import annotations

from taskflow.cli.bootstrap import build_notification_host, build_remote_messenger, create_initial_state
from taskflow.connectors.desktop import ConsoleNotificationHost, DisabledNotificationHost
from taskflow.connectors.telegram_client import TelegramMessenger
from taskflow.llm.offline import OfflineLLMClient
from taskflow.reminders.runner import start_reminders_in_background

from .fakes import RecordingEventSink


def test_create_initial_state_without_remote_or_llm(settings) -> None:
    st = create_initial_state(settings=settings, events=RecordingEventSink())

    assert st.remote is None
    assert isinstance(st.llm, OfflineLLMClient)
    assert st.engine is not None
    assert st.engine.interval_seconds == 60.0
    assert st.profile.name == "Tester"
    assert st.destination() is None
    assert settings.tasks_db_path.parent.exists()


def test_reminders_can_be_disabled(settings) -> None:
    settings.reminders_enabled = False
    st = create_initial_state(settings=settings, events=RecordingEventSink())
    assert st.engine is None


def test_notification_host_modes(settings) -> None:
    assert isinstance(build_notification_host(settings), ConsoleNotificationHost)
    settings.desktop_notifications = "off"
    assert isinstance(build_notification_host(settings), DisabledNotificationHost)


def test_telegram_messenger_needs_token(settings) -> None:
    settings.remote_channel = "telegram"
    settings.telegram_bot_token = ""
    settings.telegram_api_base = "https://api.telegram.org"
    settings.telegram_timeout_seconds = 5.0
    assert build_remote_messenger(settings) is None

    settings.telegram_bot_token = "123:abc"
    assert isinstance(build_remote_messenger(settings), TelegramMessenger)


def test_background_runner_scans_and_stops(settings, capsys) -> None:
    settings.notify_destination = ""
    st = create_initial_state(settings=settings, events=RecordingEventSink())
    today = st.clock.now().date().isoformat()
    task = st.task_store.add_task(text="Renew passport", due_date=today)

    runner = start_reminders_in_background(st.engine)
    assert runner is not None
    try:
        report = runner.call(st.engine.tick(), timeout=5.0)
    finally:
        runner.stop()
        runner.join(timeout=5.0)

    assert not runner.thread.is_alive()
    assert task.id in st.engine.notified
    # The immediate scan or the explicit tick, never both.
    assert report is not None
    assert capsys.readouterr().out.count("Renew passport") == 1
