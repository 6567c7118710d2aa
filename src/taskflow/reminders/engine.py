# src/taskflow/reminders/engine.py

from __future__ import annotations

"""
Reminder engine.

A small polling loop that:
- reads the current task set,
- picks tasks that are due today, not done and not yet notified,
- dispatches a desktop notification and (if the user has a destination) a
  remote chat message,
- marks each task as notified exactly once, even when a channel failed,
- emits an in-app "due today" event.

The notified set lives on the engine instance and only for the process
lifetime. Delivery is best-effort: not spamming the user wins over retrying a
failed channel, so a task that failed to deliver is not retried.
"""

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime

from ..core.ports import Clock, EventSink, TaskSource
from ..scheduling.dates import parse_day
from ..tasks.task_models import Task
from .dispatchers import DispatchResult, LocalDispatcher, RemoteDispatcher

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60.0

DestinationProvider = Callable[[], str | None]


@dataclass(slots=True)
class ScanReport:
    today: date
    notified: list[str] = field(default_factory=list)
    results: list[DispatchResult] = field(default_factory=list)
    skipped: bool = False

    @property
    def failures(self) -> list[DispatchResult]:
        return [r for r in self.results if not r.ok]


def is_due_today(task: Task, today: date) -> bool:
    if task.is_done:
        return False
    return parse_day(task.due_date) == today


class ReminderEngine:
    def __init__(
        self,
        tasks: TaskSource,
        local: LocalDispatcher,
        remote: RemoteDispatcher | None,
        events: EventSink,
        *,
        clock: Clock,
        destination: DestinationProvider = lambda: None,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ) -> None:
        self._tasks = tasks
        self._local = local
        self._remote = remote
        self._events = events
        self._clock = clock
        self._destination = destination
        self.interval_seconds = max(0.01, float(interval_seconds))

        self._notified: set[str] = set()
        # Console commands read the set from another thread.
        self._notified_lock = threading.Lock()
        self._scanning = False
        self._stop = asyncio.Event()
        self._running = False

    @property
    def notified(self) -> frozenset[str]:
        with self._notified_lock:
            return frozenset(self._notified)

    @property
    def running(self) -> bool:
        return self._running

    # ---- one scan ----

    async def scan(self, tasks: Iterable[Task], now: datetime) -> ScanReport:
        """
        Dispatch reminders for tasks newly due on now's date.

        Never raises for per-task problems. A scan started while another one is
        still in flight is skipped, so a slow remote channel cannot cause
        duplicate dispatches.
        """
        today = now.date()
        report = ScanReport(today=today)

        if self._scanning:
            logger.info("Reminder scan skipped: previous scan still running")
            report.skipped = True
            return report

        self._scanning = True
        try:
            for task in tasks:
                try:
                    if self._was_notified(task.id) or not is_due_today(task, today):
                        continue
                except Exception:
                    logger.exception("Reminder eligibility check failed task=%r", task)
                    continue

                await self._notify_task(task, report)
        finally:
            self._scanning = False

        if report.notified:
            logger.info("Reminder scan %s: notified %d task(s)", today.isoformat(), len(report.notified))
        return report

    async def _notify_task(self, task: Task, report: ScanReport) -> None:
        try:
            report.results.append(await self._local.dispatch(task))

            destination = self._current_destination()
            if self._remote is not None and destination:
                # Awaited per task: at most one outbound remote message at a time.
                report.results.append(await self._remote.dispatch(task, destination))
            else:
                logger.debug("Remote reminder skipped task_id=%s: no channel/destination", task.id)
        except Exception:
            logger.exception("Reminder dispatch crashed task_id=%s", task.id)
        finally:
            # Marked even on failure: no duplicate spam the same day.
            with self._notified_lock:
                self._notified.add(task.id)
            report.notified.append(task.id)

        try:
            self._events.emit(f"Reminder: {task.text} due today", "info")
        except Exception:
            logger.exception("Reminder event emit failed task_id=%s", task.id)

    def _was_notified(self, task_id: str) -> bool:
        with self._notified_lock:
            return task_id in self._notified

    def _current_destination(self) -> str | None:
        try:
            dest = self._destination()
        except Exception:
            logger.exception("Reminder destination lookup failed")
            return None
        dest = (dest or "").strip()
        return dest or None

    # ---- scheduling ----

    async def tick(self) -> ScanReport | None:
        """One scheduled scan against the live task source and clock."""
        try:
            now = self._clock.now()
        except Exception:
            logger.exception("Clock failed; reminder tick skipped")
            return None

        try:
            tasks = list(self._tasks.list_tasks())
        except Exception:
            logger.exception("list_tasks failed")
            tasks = []

        return await self.scan(tasks, now)

    async def run(self) -> None:
        """
        Scan immediately, then every interval_seconds until stop().

        stop() only ends the waiting between ticks; a scan already in flight
        runs to completion.
        """
        self._running = True
        logger.info("Reminder engine started (interval=%.1fs)", self.interval_seconds)
        try:
            while not self._stop.is_set():
                try:
                    await self.tick()
                except Exception:
                    logger.exception("Reminder tick crashed")

                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
        finally:
            self._running = False
            logger.info("Reminder engine stopped")

    def stop(self) -> None:
        """Cancel the pending timer. Must be called on the engine's event loop thread."""
        self._stop.set()
