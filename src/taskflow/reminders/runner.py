# src/taskflow/reminders/runner.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

from .engine import ReminderEngine

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ReminderRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    engine: ReminderEngine

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.engine.stop)
        except Exception:
            logger.debug("Failed to signal reminder engine stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)

    def call(self, coro: Coroutine[Any, Any, T], timeout: float = 30.0) -> T:
        """
        Run a coroutine on the engine loop from another thread and wait for it.

        Async collaborators (nio client, engine state) belong to that loop, so
        console commands go through here instead of starting their own loop.
        """
        fut = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return fut.result(timeout=timeout)


def start_reminders_in_background(engine: ReminderEngine) -> ReminderRunner | None:
    """
    Start the reminder loop in a background thread.

    The console REPL blocks on input(), the engine is async and wants its own
    event loop.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        holder["loop"] = loop
        ready.set()

        try:
            loop.run_until_complete(engine.run())
        except Exception:
            logger.exception("Reminder loop crashed.")
        finally:
            with contextlib.suppress(Exception):
                loop.run_until_complete(loop.shutdown_asyncgens())
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="taskflow-reminders", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    if not isinstance(loop, asyncio.AbstractEventLoop):
        logger.error("Reminder thread did not initialize properly.")
        return None

    logger.info("Reminder background thread started.")
    return ReminderRunner(thread=t, loop=loop, engine=engine)
