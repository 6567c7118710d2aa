# src/taskflow/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


class TaskStatus(StrEnum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"

    @classmethod
    def from_raw(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.TODO
        try:
            return cls(str(raw).strip().lower().replace("_", "-"))
        except ValueError:
            return cls.TODO


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_raw(cls, raw: str | None) -> Priority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.MEDIUM


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


@dataclass(slots=True)
class Task:
    """
    A task as seen by the reminder core.

    start_date / due_date stay raw ISO date strings ("YYYY-MM-DD"); parsing
    happens in scheduling.dates so a malformed value never breaks loading.
    """

    id: str
    text: str
    status: TaskStatus = TaskStatus.TODO
    priority: Priority = Priority.MEDIUM
    start_date: str | None = None
    due_date: str | None = None
    tags: list[str] = field(default_factory=list)
    description: str | None = None
    created_at: float = 0.0
    is_ai_generated: bool = False

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Task:
        """Build a Task from a REST-style record (camelCase) or a snake_case row."""

        def pick(*keys: str) -> Any:
            for k in keys:
                if k in record and record[k] is not None:
                    return record[k]
            return None

        tags_raw = pick("tags") or []
        tags = [str(t) for t in tags_raw] if isinstance(tags_raw, (list, tuple)) else []

        try:
            created_at = float(pick("createdAt", "created_at") or 0.0)
        except (TypeError, ValueError):
            created_at = 0.0

        return cls(
            id=str(pick("id") or ""),
            text=str(pick("text") or ""),
            status=TaskStatus.from_raw(pick("status")),
            priority=Priority.from_raw(pick("priority")),
            start_date=_opt_str(pick("startDate", "start_date")),
            due_date=_opt_str(pick("dueDate", "due_date")),
            tags=tags,
            description=_opt_str(pick("description")),
            created_at=created_at,
            is_ai_generated=bool(pick("isAiGenerated", "is_ai_generated") or False),
        )

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "status": self.status.value,
            "priority": self.priority.value,
            "startDate": self.start_date,
            "dueDate": self.due_date,
            "tags": list(self.tags),
            "description": self.description,
            "createdAt": self.created_at,
            "isAiGenerated": self.is_ai_generated,
            "completed": self.is_done,
        }


@dataclass(slots=True)
class UserProfile:
    name: str = "User"
    # Remote channel destination (Telegram chat id / Matrix room id). Empty = not configured.
    notify_destination: str | None = None
