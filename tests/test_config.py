# tests/test_config.py

from __future__ import annotations

from pathlib import Path

import pytest

from taskflow.config import Settings

_CHANNEL_VARS = (
    "TASKFLOW_TELEGRAM_BOT_TOKEN",
    "TELEGRAM_BOT_TOKEN",
    "TASKFLOW_MATRIX_HOMESERVER",
    "MATRIX_HOMESERVER",
    "TASKFLOW_MATRIX_USER_ID",
    "MATRIX_USER_ID",
    "TASKFLOW_REMOTE_CHANNEL",
    "TASKFLOW_NOTIFY_DESTINATION",
    "TASKFLOW_TELEGRAM_CHAT_ID",
    "TASKFLOW_REMINDER_INTERVAL_SECONDS",
    "TASKFLOW_DESKTOP_NOTIFICATIONS",
    "TASKFLOW_DATA_DIR",
    "TASKFLOW_TASKS_DB_PATH",
)


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in _CHANNEL_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env) -> None:
    s = Settings.from_env()
    assert s.reminder_interval_seconds == 60.0
    assert s.remote_channel == "none"
    assert s.desktop_notifications == "notify-send"
    assert s.notify_destination == ""
    assert s.tasks_db_path == Path(".local/taskflow") / "tasks.sqlite3"


def test_remote_channel_follows_credentials(clean_env) -> None:
    clean_env.setenv("TASKFLOW_TELEGRAM_BOT_TOKEN", "123:abc")
    clean_env.setenv("TASKFLOW_TELEGRAM_CHAT_ID", "42")

    s = Settings.from_env()
    assert s.remote_channel == "telegram"
    assert s.notify_destination == "42"

    clean_env.setenv("TASKFLOW_REMOTE_CHANNEL", "none")
    assert Settings.from_env().remote_channel == "none"


def test_interval_and_choices_are_sanitized(clean_env) -> None:
    clean_env.setenv("TASKFLOW_REMINDER_INTERVAL_SECONDS", "0.001")
    clean_env.setenv("TASKFLOW_DESKTOP_NOTIFICATIONS", "fireworks")
    clean_env.setenv("TASKFLOW_DATA_DIR", "/tmp/tf-data")

    s = Settings.from_env()
    assert s.reminder_interval_seconds == 1.0
    assert s.desktop_notifications == "notify-send"
    assert s.tasks_db_path == Path("/tmp/tf-data/tasks.sqlite3")
