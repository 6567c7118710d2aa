# src/taskflow/scheduling/calendar.py

"""
Calendar range projection: which tasks show up in which day cell of a month
grid, and where each task's bar sits inside the cell (start/middle/end/both).
"""

from __future__ import annotations

import calendar as _cal
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from ..tasks.task_models import Task
from .dates import CellKind, SegmentRole, cell_kind, is_day_in_range, segment_role

SUNDAY = _cal.SUNDAY
MONDAY = _cal.MONDAY


@dataclass(slots=True, frozen=True)
class MonthGrid:
    """
    A month laid out in week rows.

    Leading blank cells pad the first week up to day 1 (Sunday-first by
    default, as in the web calendar). No trailing cells are added.
    """

    year: int
    month: int
    first_weekday: int = SUNDAY

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be 1..12, got {self.month}")
        if not 0 <= self.first_weekday <= 6:
            raise ValueError(f"first_weekday must be 0..6, got {self.first_weekday}")

    @classmethod
    def containing(cls, day: date, first_weekday: int = SUNDAY) -> MonthGrid:
        return cls(day.year, day.month, first_weekday)

    @property
    def days_in_month(self) -> int:
        return _cal.monthrange(self.year, self.month)[1]

    @property
    def leading_blanks(self) -> int:
        # date.weekday(): Monday=0 .. Sunday=6, same numbering as calendar.SUNDAY etc.
        return (date(self.year, self.month, 1).weekday() - self.first_weekday) % 7

    def cells(self) -> list[date | None]:
        blanks: list[date | None] = [None] * self.leading_blanks
        return blanks + [date(self.year, self.month, d) for d in range(1, self.days_in_month + 1)]

    def shift(self, months: int) -> MonthGrid:
        idx = self.year * 12 + (self.month - 1) + months
        return MonthGrid(idx // 12, idx % 12 + 1, self.first_weekday)


@dataclass(slots=True, frozen=True)
class CalendarEntry:
    task: Task
    day: date
    role: SegmentRole

    @property
    def kind(self) -> CellKind:
        # Unlike role, tells a due-only task (point) from a one-day range.
        return cell_kind(self.day, self.task.start_date, self.task.due_date)


@dataclass(slots=True, frozen=True)
class CalendarCell:
    position: int
    day: date | None
    entries: tuple[CalendarEntry, ...] = ()

    @property
    def is_blank(self) -> bool:
        return self.day is None


def project(tasks: Iterable[Task], grid: MonthGrid) -> list[CalendarCell]:
    """
    Compute every cell of the grid with its overlapping tasks.

    Entries keep the task-set order; sorting is left to the presentation layer.
    Blank cells and days without tasks get an empty tuple.
    """
    task_list = list(tasks)
    out: list[CalendarCell] = []

    for position, day in enumerate(grid.cells()):
        if day is None:
            out.append(CalendarCell(position=position, day=None))
            continue

        entries = tuple(
            CalendarEntry(task=t, day=day, role=segment_role(day, t.start_date, t.due_date))
            for t in task_list
            if is_day_in_range(day, t.start_date, t.due_date)
        )
        out.append(CalendarCell(position=position, day=day, entries=entries))

    return out


def by_day(cells: Iterable[CalendarCell]) -> dict[date, list[CalendarEntry]]:
    """Mapping view of a projection (blank cells are dropped)."""
    return {c.day: list(c.entries) for c in cells if c.day is not None}
