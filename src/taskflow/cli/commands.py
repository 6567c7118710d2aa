# src/taskflow/cli/commands.py

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Callable, Coroutine
from datetime import date
from typing import Any, TypeVar, cast

from ..core.state import AppState
from ..reminders.dispatchers import MissingDestination
from ..scheduling.calendar import MonthGrid, project
from ..scheduling.dates import CellKind, parse_day
from ..scheduling.quadrants import Quadrant, partition
from ..tasks.task_api import breakdown_task, generate_daily_plan
from ..tasks.task_models import Priority, Task, TaskStatus

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

T = TypeVar("T")

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases or []:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, emit: CommandEmitter | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            return cast(CommandHandler3, handler)(state, args, emit)
        return cast(CommandHandler2, handler)(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----

_STATUS_ICON = {
    TaskStatus.TODO: "[ ]",
    TaskStatus.IN_PROGRESS: "[~]",
    TaskStatus.DONE: "[x]",
}

_KIND_GLYPH = {
    CellKind.POINT: "*",
    CellKind.RANGE_START: "[=",
    CellKind.RANGE_MIDDLE: "==",
    CellKind.RANGE_END: "=]",
    CellKind.RANGE_START_AND_END: "[]",
}


def _run_async(state: AppState, coro: Coroutine[Any, Any, T]) -> T:
    # Async collaborators live on the reminder loop when it runs.
    if state.runner is not None:
        return state.runner.call(coro)
    return asyncio.run(coro)


def _today(state: AppState) -> date:
    return state.clock.now().date()


def _short_id(task: Task) -> str:
    return task.id[:8]


def format_task(task: Task) -> str:
    icon = _STATUS_ICON.get(task.status, "[ ]")
    line = f"{icon} {_short_id(task)} ({task.priority.value}) {task.text}"
    if task.start_date and task.due_date:
        line += f"  {task.start_date} -> {task.due_date}"
    elif task.due_date:
        line += f"  due {task.due_date}"
    if task.tags:
        line += "  " + " ".join(f"#{t}" for t in task.tags)
    return line


def _resolve(state: AppState, args: list[str]) -> Task | None:
    if not args:
        return None
    return state.task_store.find_task(args[0])


def _parse_task_tokens(tokens: list[str]) -> tuple[str, dict[str, Any], str | None]:
    """
    Split "/add" style tokens into text + fields.

    Recognized tokens: !high !medium !low, due:YYYY-MM-DD, start:YYYY-MM-DD, #tag.
    Returns (text, fields, error).
    """
    words: list[str] = []
    fields: dict[str, Any] = {"tags": []}

    for tok in tokens:
        low = tok.lower()
        if low.startswith("!") and low[1:] in {p.value for p in Priority}:
            fields["priority"] = Priority(low[1:])
        elif low.startswith(("due:", "start:")):
            key, _, value = tok.partition(":")
            day = parse_day(value)
            if day is None:
                return "", {}, f"Invalid date {value!r}; use YYYY-MM-DD."
            fields[f"{key.lower()}_date"] = day.isoformat()
        elif tok.startswith("#") and len(tok) > 1:
            fields["tags"].append(tok[1:])
        else:
            words.append(tok)

    start, due = parse_day(fields.get("start_date")), parse_day(fields.get("due_date"))
    if start is not None and due is None:
        return "", {}, "A start date needs a due date (start:... due:...)."
    if start is not None and due is not None and start > due:
        return "", {}, "Start date is after the due date."

    return " ".join(words).strip(), fields, None


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    settings = state.settings
    tasks = state.task_store.list_tasks()
    open_count = sum(1 for t in tasks if not t.is_done)
    engine = state.engine
    reminders = "OFF"
    if engine is not None:
        reminders = f"{'running' if engine.running else 'idle'}, every {engine.interval_seconds:.0f}s"
    dest = state.destination() or "(not set)"
    return (
        "Status:\n"
        f"  Today: {_today(state).isoformat()} ({getattr(settings, 'timezone', 'UTC')})\n"
        f"  Tasks: {len(tasks)} total, {open_count} open\n"
        f"  Reminders: {reminders}\n"
        f"  Desktop notifications: {getattr(settings, 'desktop_notifications', 'off')}\n"
        f"  Remote channel: {getattr(settings, 'remote_channel', 'none')} -> {dest}\n"
        f"  Notified this session: {len(engine.notified) if engine else 0}"
    )


def cmd_tasks(state: AppState, args: list[str]) -> str:
    """
    /tasks          -> open tasks
    /tasks all      -> include done
    /tasks today    -> due today
    /tasks overdue  -> due before today, not done
    """
    mode = (args[0].lower() if args else "open")
    today = _today(state)
    tasks = state.task_store.list_tasks(include_done=(mode == "all"))

    if mode == "today":
        tasks = [t for t in tasks if parse_day(t.due_date) == today]
    elif mode == "overdue":
        tasks = [t for t in tasks if (d := parse_day(t.due_date)) is not None and d < today]
    elif mode not in ("open", "all"):
        return "Usage: /tasks [open|all|today|overdue]"

    if not tasks:
        return "No tasks."
    return "\n".join(format_task(t) for t in tasks)


def cmd_add(state: AppState, args: list[str]) -> str:
    text, fields, error = _parse_task_tokens(args)
    if error:
        return error
    if not text:
        return "Usage: /add <text> [!high|!medium|!low] [start:YYYY-MM-DD] [due:YYYY-MM-DD] [#tag]"

    task = state.task_store.add_task(text=text, **fields)
    return f"Added: {format_task(task)}"


def _set_status(state: AppState, args: list[str], status: TaskStatus) -> str:
    task = _resolve(state, args)
    if task is None:
        return "Task not found (use the id shown by /tasks)."
    state.task_store.update_task_fields(task.id, status=status)
    task.status = status
    return format_task(task)


def cmd_done(state: AppState, args: list[str]) -> str:
    return _set_status(state, args, TaskStatus.DONE)


def cmd_start(state: AppState, args: list[str]) -> str:
    return _set_status(state, args, TaskStatus.IN_PROGRESS)


def cmd_reopen(state: AppState, args: list[str]) -> str:
    return _set_status(state, args, TaskStatus.TODO)


def cmd_delete(state: AppState, args: list[str]) -> str:
    task = _resolve(state, args)
    if task is None:
        return "Task not found (use the id shown by /tasks)."
    state.task_store.delete_task(task.id)
    return f"Deleted: {task.text}"


def cmd_dates(state: AppState, args: list[str]) -> str:
    """
    /dates <id> due:YYYY-MM-DD [start:YYYY-MM-DD]
    /dates <id> clear
    """
    task = _resolve(state, args)
    if task is None:
        return "Usage: /dates <id> due:YYYY-MM-DD [start:YYYY-MM-DD] | /dates <id> clear"

    rest = args[1:]
    if rest and rest[0].lower() == "clear":
        state.task_store.update_task_fields(task.id, start_date=None, due_date=None)
        return f"Dates cleared: {task.text}"

    _, fields, error = _parse_task_tokens(rest)
    if error:
        return error
    if "due_date" not in fields:
        return "Usage: /dates <id> due:YYYY-MM-DD [start:YYYY-MM-DD] | /dates <id> clear"

    state.task_store.update_task_fields(
        task.id, start_date=fields.get("start_date"), due_date=fields["due_date"]
    )
    updated = state.task_store.get_task(task.id)
    return format_task(updated) if updated else "Task disappeared."


def cmd_matrix(state: AppState, args: list[str]) -> str:
    quadrants = partition(state.task_store.list_tasks(include_done=False), _today(state))
    lines: list[str] = []
    for q in Quadrant:
        lines.append(f"{q.label} ({q.hint}):")
        items = quadrants[q]
        if not items:
            lines.append("  Empty")
        lines.extend(f"  {format_task(t)}" for t in items)
    return "\n".join(lines)


def cmd_calendar(state: AppState, args: list[str]) -> str:
    """
    /calendar           -> current month
    /calendar 2024-06   -> given month
    /calendar +1 | -1   -> relative to current month
    """
    grid = MonthGrid.containing(_today(state))
    if args:
        arg = args[0]
        try:
            if arg.startswith(("+", "-")):
                grid = grid.shift(int(arg))
            else:
                year_s, _, month_s = arg.partition("-")
                grid = MonthGrid(int(year_s), int(month_s))
        except ValueError:
            return "Usage: /calendar [YYYY-MM|+N|-N]"

    cells = project(state.task_store.list_tasks(), grid)
    lines = [f"{date(grid.year, grid.month, 1):%B %Y}"]
    for cell in cells:
        if cell.day is None or not cell.entries:
            continue
        lines.append(f"{cell.day:%a %d}:")
        for entry in cell.entries:
            glyph = _KIND_GLYPH.get(entry.kind, "?")
            lines.append(f"  {glyph} {entry.task.text} ({entry.task.priority.value})")
    if len(lines) == 1:
        lines.append("  No scheduled tasks.")
    return "\n".join(lines)


def cmd_remind(state: AppState, args: list[str]) -> str:
    """
    /remind       -> tasks already notified in this session
    /remind now   -> run a reminder scan immediately
    """
    engine = state.engine
    if engine is None:
        return "Reminders are disabled."

    if args and args[0].lower() == "now":
        report = _run_async(state, engine.tick())
        if report is None:
            return "Reminder scan failed (see log)."
        if report.skipped:
            return "A reminder scan is already running."
        if not report.notified:
            return "No new tasks due today."
        failures = ", ".join(f"{r.channel}: {r.error}" for r in report.failures)
        msg = f"Reminded {len(report.notified)} task(s)."
        return f"{msg} Failures: {failures}" if failures else msg

    notified = sorted(engine.notified)
    if not notified:
        return "No reminders sent in this session."
    return "Reminded this session:\n" + "\n".join(f"  {tid[:8]}" for tid in notified)


def cmd_profile(state: AppState, args: list[str]) -> str:
    """
    /profile                 -> show profile
    /profile dest <value>    -> set remote destination (chat id / room id)
    /profile dest clear      -> remove remote destination
    /profile name <name>     -> set display name
    """
    if not args:
        return (
            "Profile:\n"
            f"  Name: {state.profile.name}\n"
            f"  Notify destination: {state.destination() or '(not set)'}"
        )

    sub = args[0].lower()
    value = " ".join(args[1:]).strip()

    if sub == "dest" and value:
        with state.lock:
            state.profile.notify_destination = None if value.lower() == "clear" else value
        return f"Notify destination: {state.destination() or '(not set)'}"

    if sub == "name" and value:
        with state.lock:
            state.profile.name = value
        return f"Name: {value}"

    return "Usage: /profile [dest <value>|dest clear|name <name>]"


def cmd_notify(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/notify test -> send a test message to the configured destination."""
    if not args or args[0].lower() != "test":
        return "Usage: /notify test"
    if state.remote is None:
        return "Remote channel is not configured (TASKFLOW_REMOTE_CHANNEL)."

    if emit:
        with contextlib.suppress(Exception):
            emit("[NOTIFY] Sending test message...")

    app_name = getattr(state.settings, "app_name", "TaskFlow")
    result = _run_async(
        state,
        state.remote.send_text(
            state.destination(),
            f"🔔 Test Notification from {app_name}! Your integration is working.",
        ),
    )
    if result.ok:
        return "Test notification sent."
    if isinstance(result.error, MissingDestination):
        return "Set a destination first: /profile dest <chat id>"
    return f"Test notification failed: {result.error}"


def cmd_breakdown(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    task = _resolve(state, args)
    if task is None:
        return "Usage: /breakdown <id>"

    if emit:
        with contextlib.suppress(Exception):
            emit(f"[AI] Breaking down: {task.text}")

    created = breakdown_task(state, task)
    if not created:
        return "AI response empty. Try again."
    return "Subtasks added:\n" + "\n".join(f"  {format_task(t)}" for t in created)


def cmd_plan(state: AppState, args: list[str]) -> str:
    texts = [t.text for t in state.task_store.list_tasks(include_done=False)]
    return generate_daily_plan(state, texts)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show reminder/channel status.")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks [open|all|today|overdue].", aliases=["ls"])
registry.register(
    "add",
    cmd_add,
    help_text="Add a task: /add <text> [!high] [start:YYYY-MM-DD] [due:YYYY-MM-DD] [#tag].",
)
registry.register("done", cmd_done, help_text="Mark a task done: /done <id>.")
registry.register("start", cmd_start, help_text="Mark a task in progress: /start <id>.")
registry.register("reopen", cmd_reopen, help_text="Move a task back to todo: /reopen <id>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
registry.register("dates", cmd_dates, help_text="Set or clear dates: /dates <id> due:... [start:...] | clear.")
registry.register("matrix", cmd_matrix, help_text="Show the urgency/importance matrix.")
registry.register("calendar", cmd_calendar, help_text="Month view: /calendar [YYYY-MM|+N|-N].", aliases=["cal"])
registry.register("remind", cmd_remind, help_text="Reminders: /remind | /remind now.")
registry.register("profile", cmd_profile, help_text="Profile: /profile [dest <value>|name <name>].")
registry.register("notify", cmd_notify, help_text="Send a test notification: /notify test.")
registry.register("breakdown", cmd_breakdown, help_text="AI subtask breakdown: /breakdown <id>.")
registry.register("plan", cmd_plan, help_text="AI daily plan over open tasks.")
