# src/taskflow/scheduling/quadrants.py

"""
Urgency/importance quadrants (Eisenhower matrix).

Urgency comes from the due date relative to the reference day, importance from
priority == high. Nothing else (tags, description, status other than done)
takes part. Results are computed on every call: "today" moves, so a cached
classification would go stale.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import StrEnum

from ..tasks.task_models import Priority, Task
from .dates import DateLike, is_urgent


class Quadrant(StrEnum):
    DO = "do"
    DECIDE = "decide"
    DELEGATE = "delegate"
    DELETE = "delete"

    @property
    def label(self) -> str:
        return _LABELS[self][0]

    @property
    def hint(self) -> str:
        return _LABELS[self][1]


_LABELS: dict[Quadrant, tuple[str, str]] = {
    Quadrant.DO: ("Do First", "Urgent & Important"),
    Quadrant.DECIDE: ("Schedule", "Important, Not Urgent"),
    Quadrant.DELEGATE: ("Delegate", "Urgent, Not Important"),
    Quadrant.DELETE: ("Eliminate", "Neither Urgent nor Important"),
}


def classify(task: Task, reference: DateLike) -> Quadrant:
    if task.is_done:
        raise ValueError(f"Task {task.id} is done; done tasks are not classified")

    urgent = is_urgent(task, reference)
    high = task.priority == Priority.HIGH

    if high and urgent:
        return Quadrant.DO
    if high:
        return Quadrant.DECIDE
    if urgent:
        return Quadrant.DELEGATE
    return Quadrant.DELETE


def partition(tasks: Iterable[Task], reference: DateLike) -> dict[Quadrant, list[Task]]:
    """Split open tasks into the four quadrants, keeping input order inside each."""
    out: dict[Quadrant, list[Task]] = {q: [] for q in Quadrant}
    for task in tasks:
        if task.is_done:
            continue
        out[classify(task, reference)].append(task)
    return out
