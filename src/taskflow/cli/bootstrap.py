# src/taskflow/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (store, LLM, notification
  host, remote messenger, reminder engine).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..connectors.desktop import ConsoleNotificationHost, DisabledNotificationHost, NotifySendHost
from ..core.clock import SystemClock
from ..core.ports import EventSink, LLMClient, NotificationHost, RemoteMessenger
from ..core.state import AppState
from ..llm.client import OpenRouterLLMClient
from ..llm.offline import OfflineLLMClient
from ..reminders.dispatchers import LocalDispatcher, RemoteDispatcher
from ..reminders.engine import ReminderEngine
from ..tasks.task_models import UserProfile
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def build_notification_host(settings) -> NotificationHost:
    mode = getattr(settings, "desktop_notifications", "off")
    app_name = getattr(settings, "app_name", "TaskFlow")
    if mode == "notify-send":
        return NotifySendHost(app_name=app_name)
    if mode == "console":
        return ConsoleNotificationHost()
    return DisabledNotificationHost()


def build_remote_messenger(settings) -> RemoteMessenger | None:
    channel = getattr(settings, "remote_channel", "none")

    if channel == "telegram":
        from ..connectors.telegram_client import TelegramMessenger

        if not settings.telegram_bot_token:
            logger.warning("Remote channel 'telegram' selected but TASKFLOW_TELEGRAM_BOT_TOKEN is empty.")
            return None
        return TelegramMessenger(
            settings.telegram_bot_token,
            api_base=settings.telegram_api_base,
            timeout_seconds=settings.telegram_timeout_seconds,
        )

    if channel == "matrix":
        from ..connectors.matrix_client import MatrixMessenger

        return MatrixMessenger(settings)

    return None


def build_llm(settings) -> LLMClient:
    try:
        return OpenRouterLLMClient(settings)
    except Exception as e:
        logger.info("LLM not configured (%s); AI features run offline.", e)
        return OfflineLLMClient()


def create_initial_state(*, settings=None, events: EventSink | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()
    if events is None:
        from ..connectors.console_connector import ConsoleEventSink

        events = ConsoleEventSink()

    _ensure_local_dirs(settings)

    messenger = build_remote_messenger(settings)
    app_name = getattr(settings, "app_name", "TaskFlow")

    state = AppState(
        settings=settings,
        task_store=TaskStore(settings.tasks_db_path),
        profile=UserProfile(
            name=getattr(settings, "user_name", "User"),
            notify_destination=getattr(settings, "notify_destination", "") or None,
        ),
        clock=SystemClock(getattr(settings, "timezone", "UTC")),
        events=events,
        llm=build_llm(settings),
        remote=RemoteDispatcher(messenger, app_name=app_name) if messenger is not None else None,
    )

    if getattr(settings, "reminders_enabled", True):
        local = LocalDispatcher(build_notification_host(settings))
        local.ensure_permission()
        state.engine = ReminderEngine(
            state.task_store,
            local,
            state.remote,
            state.events,
            clock=state.clock,
            destination=state.destination,
            interval_seconds=settings.reminder_interval_seconds,
        )

    return state
