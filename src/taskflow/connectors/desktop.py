# src/taskflow/connectors/desktop.py

from __future__ import annotations

import logging
import shutil
import subprocess
from datetime import datetime

from ..core.ports import PermissionState

logger = logging.getLogger(__name__)


class NotifySendHost:
    """
    Desktop notifications via libnotify's `notify-send`.

    Permission mirrors the browser model: "default" until requested once,
    then "granted" when notify-send is available, otherwise "denied".
    """

    def __init__(self, *, app_name: str = "TaskFlow", timeout_seconds: float = 5.0) -> None:
        self._app_name = app_name
        self._timeout = timeout_seconds
        self._state: PermissionState = "default"
        self._binary: str | None = None

    def permission(self) -> PermissionState:
        return self._state

    def request_permission(self) -> PermissionState:
        if self._state != "default":
            return self._state

        self._binary = shutil.which("notify-send")
        if self._binary:
            self._state = "granted"
        else:
            logger.warning("notify-send not found on PATH; desktop notifications disabled")
            self._state = "denied"
        return self._state

    def notify(self, title: str, body: str) -> None:
        if not self._binary:
            raise RuntimeError("notify-send is not available")
        subprocess.run(
            [self._binary, "--app-name", self._app_name, title, body],
            check=True,
            timeout=self._timeout,
            capture_output=True,
        )


class ConsoleNotificationHost:
    """Prints desktop notifications to the terminal (headless machines, demos)."""

    def __init__(self) -> None:
        self._state: PermissionState = "default"

    def permission(self) -> PermissionState:
        return self._state

    def request_permission(self) -> PermissionState:
        if self._state == "default":
            self._state = "granted"
        return self._state

    def notify(self, title: str, body: str) -> None:
        ts = datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")
        print(f"[{ts}] [NOTIFY] {title}: {body}", flush=True)


class DisabledNotificationHost:
    """Desktop notifications switched off in settings."""

    def permission(self) -> PermissionState:
        return "denied"

    def request_permission(self) -> PermissionState:
        return "denied"

    def notify(self, title: str, body: str) -> None:
        raise RuntimeError("desktop notifications are disabled")
