# tests/test_reminder_engine.py

from __future__ import annotations

import asyncio
import threading
from datetime import datetime

import pytest

from taskflow.reminders.dispatchers import (
    DispatchResult,
    LocalDispatcher,
    PermissionDenied,
    RemoteDispatcher,
    TransportError,
)
from taskflow.reminders.engine import ReminderEngine, is_due_today
from taskflow.tasks.task_models import TaskStatus

from .fakes import (
    FakeClock,
    FakeMessenger,
    FakeNotificationHost,
    FakeTaskSource,
    RecordingEventSink,
    make_task,
)

MORNING = datetime(2024, 6, 10, 9, 0)


def _engine(
    *,
    tasks: FakeTaskSource | None = None,
    host: FakeNotificationHost | None = None,
    messenger: FakeMessenger | None = None,
    destination: str | None = "chat-42",
    events: RecordingEventSink | None = None,
    interval: float = 60.0,
) -> ReminderEngine:
    remote = RemoteDispatcher(messenger) if messenger is not None else None
    return ReminderEngine(
        tasks or FakeTaskSource(),
        LocalDispatcher(host or FakeNotificationHost()),
        remote,
        events or RecordingEventSink(),
        clock=FakeClock(MORNING),
        destination=lambda: destination,
        interval_seconds=interval,
    )


def test_is_due_today() -> None:
    today = MORNING.date()
    assert is_due_today(make_task("a", due_date="2024-06-10"), today)
    assert not is_due_today(make_task("b", due_date="2024-06-09"), today)
    assert not is_due_today(make_task("c", due_date="2024-06-10", status="done"), today)
    assert not is_due_today(make_task("d"), today)


@pytest.mark.asyncio
async def test_task_due_today_is_notified_once_across_scans() -> None:
    host = FakeNotificationHost()
    messenger = FakeMessenger()
    engine = _engine(host=host, messenger=messenger)
    task = make_task("t1", text="Pay rent", due_date="2024-06-10")

    first = await engine.scan([task], MORNING)
    second = await engine.scan([task], datetime(2024, 6, 10, 9, 5))

    assert first.notified == ["t1"]
    assert second.notified == []
    assert len(host.shown) == 1
    assert len(messenger.sent) == 1
    assert "t1" in engine.notified


@pytest.mark.asyncio
async def test_done_and_undated_tasks_are_never_notified() -> None:
    host = FakeNotificationHost()
    messenger = FakeMessenger()
    engine = _engine(host=host, messenger=messenger)
    tasks = [
        make_task("done", status="done", due_date="2024-06-10"),
        make_task("undated"),
        make_task("tomorrow", due_date="2024-06-11"),
        make_task("overdue", due_date="2024-06-01"),
    ]

    report = await engine.scan(tasks, MORNING)

    assert report.notified == []
    assert host.shown == []
    assert messenger.sent == []


@pytest.mark.asyncio
async def test_task_completed_before_scan_is_skipped() -> None:
    host = FakeNotificationHost()
    engine = _engine(host=host)
    task = make_task("t1", due_date="2024-06-10")
    task.status = TaskStatus.DONE

    await engine.scan([task], MORNING)
    assert host.shown == []


@pytest.mark.asyncio
async def test_remote_failure_does_not_block_desktop() -> None:
    host = FakeNotificationHost()
    messenger = FakeMessenger(error=ConnectionError("offline"))
    engine = _engine(host=host, messenger=messenger)

    report = await engine.scan([make_task("t1", due_date="2024-06-10")], MORNING)

    assert len(host.shown) == 1
    assert [type(r.error) for r in report.failures] == [TransportError]
    # Marked anyway: no retry later the same day.
    assert "t1" in engine.notified
    messenger.error = None
    await engine.scan([make_task("t1", due_date="2024-06-10")], MORNING)
    assert messenger.sent == []


@pytest.mark.asyncio
async def test_desktop_denied_does_not_block_remote() -> None:
    host = FakeNotificationHost(state="denied")
    messenger = FakeMessenger()
    engine = _engine(host=host, messenger=messenger)

    report = await engine.scan([make_task("t1", due_date="2024-06-10")], MORNING)

    assert host.shown == []
    assert len(messenger.sent) == 1
    assert [type(r.error) for r in report.failures] == [PermissionDenied]


@pytest.mark.asyncio
async def test_no_destination_means_no_remote_attempt() -> None:
    messenger = FakeMessenger()
    engine = _engine(messenger=messenger, destination=None)

    report = await engine.scan([make_task("t1", due_date="2024-06-10")], MORNING)

    assert report.notified == ["t1"]
    assert messenger.sent == []
    assert [r.channel for r in report.results] == ["desktop"]


@pytest.mark.asyncio
async def test_toast_is_emitted_for_each_notified_task() -> None:
    events = RecordingEventSink()
    engine = _engine(events=events)

    await engine.scan(
        [make_task("a", text="Pay rent", due_date="2024-06-10"), make_task("b", text="Call mom", due_date="2024-06-10")],
        MORNING,
    )

    assert events.events == [
        ("Reminder: Pay rent due today", "info"),
        ("Reminder: Call mom due today", "info"),
    ]


class _ExplodingLocal:
    channel = "desktop"

    def __init__(self, bad_id: str) -> None:
        self.bad_id = bad_id
        self.seen: list[str] = []

    async def dispatch(self, task, destination=None) -> DispatchResult:
        if task.id == self.bad_id:
            raise RuntimeError("kaboom")
        self.seen.append(task.id)
        return DispatchResult(channel=self.channel, task_id=task.id)


@pytest.mark.asyncio
async def test_one_failing_task_does_not_abort_the_batch() -> None:
    local = _ExplodingLocal("bad")
    engine = ReminderEngine(
        FakeTaskSource(),
        local,  # type: ignore[arg-type]
        None,
        RecordingEventSink(),
        clock=FakeClock(MORNING),
    )

    report = await engine.scan(
        [make_task("bad", due_date="2024-06-10"), make_task("good", due_date="2024-06-10")],
        MORNING,
    )

    assert local.seen == ["good"]
    assert report.notified == ["bad", "good"]


@pytest.mark.asyncio
async def test_overlapping_scan_is_skipped() -> None:
    gate = asyncio.Event()
    messenger = FakeMessenger(gate=gate)
    host = FakeNotificationHost()
    engine = _engine(host=host, messenger=messenger)
    task = make_task("t1", due_date="2024-06-10")

    first = asyncio.create_task(engine.scan([task], MORNING))
    for _ in range(5):
        await asyncio.sleep(0)

    overlapping = await engine.scan([task], MORNING)
    assert overlapping.skipped

    gate.set()
    report = await first
    assert report.notified == ["t1"]
    assert len(host.shown) == 1
    assert len(messenger.sent) == 1


@pytest.mark.asyncio
async def test_tick_survives_failing_task_source() -> None:
    class BrokenSource:
        def list_tasks(self):
            raise RuntimeError("db locked")

    engine = ReminderEngine(
        BrokenSource(),
        LocalDispatcher(FakeNotificationHost()),
        None,
        RecordingEventSink(),
        clock=FakeClock(MORNING),
    )

    report = await engine.tick()
    assert report is not None
    assert report.notified == []


@pytest.mark.asyncio
async def test_run_scans_immediately_and_stops_cleanly() -> None:
    source = FakeTaskSource([make_task("t1", due_date="2024-06-10")])
    host = FakeNotificationHost()
    engine = _engine(tasks=source, host=host, interval=0.01)

    runner = asyncio.create_task(engine.run())
    await asyncio.sleep(0.05)
    assert engine.running

    engine.stop()
    await asyncio.wait_for(runner, timeout=1.0)

    assert not engine.running
    assert source.calls >= 2
    assert len(host.shown) == 1


@pytest.mark.asyncio
async def test_stop_before_first_interval_elapses() -> None:
    source = FakeTaskSource()
    engine = _engine(tasks=source, interval=3600)

    runner = asyncio.create_task(engine.run())
    await asyncio.sleep(0.01)
    engine.stop()
    await asyncio.wait_for(runner, timeout=1.0)

    assert source.calls == 1


@pytest.mark.asyncio
async def test_notified_can_be_read_from_another_thread_during_a_scan() -> None:
    engine = _engine()
    tasks = [make_task(f"t{i}", due_date="2024-06-10") for i in range(200)]
    errors: list[Exception] = []
    done = threading.Event()

    def reader() -> None:
        while not done.is_set():
            try:
                snapshot = engine.notified
                len(snapshot)
            except Exception as e:
                errors.append(e)
                return

    t = threading.Thread(target=reader)
    t.start()
    try:
        before = engine.notified
        report = await engine.scan(tasks, MORNING)
    finally:
        done.set()
        t.join(timeout=5.0)

    assert errors == []
    assert before == frozenset()
    assert len(report.notified) == 200
    assert len(engine.notified) == 200
