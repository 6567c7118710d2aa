# src/taskflow/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
import threading
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.ports import EventLevel
from ..core.state import AppState

logger = logging.getLogger(__name__)

_LEVEL_TAG = {"info": "INFO", "success": "OK", "error": "ERROR"}


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except OSError:
        print(line)


class ConsoleEventSink:
    """In-app toasts for the console: one timestamped line per event."""

    def __init__(self) -> None:
        # Events arrive from the reminder thread while the REPL prints.
        self._lock = threading.Lock()

    def emit(self, message: str, level: EventLevel = "info") -> None:
        tag = _LEVEL_TAG.get(level, level.upper())
        with self._lock:
            print(f"\n[{_ts_local()}] [{tag}] {message}", flush=True)


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    print(f"[{_ts_local()}] [CONSOLE] Use /help for commands, /add to create a task, /exit to quit.\n")

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            user_input = input(">>> ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            print(f"[{_ts_local()}] Not a command. Try: /add {user_input}")
            continue

        try:
            response = command_registry.handle(state, user_input, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is not None:
            print(f"[{_ts_local()}] {response}")

    logger.info("Console connector finished.")
