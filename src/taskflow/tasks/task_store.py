# src/taskflow/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
import uuid
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from .task_models import Priority, Task, TaskStatus

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class TaskStore:
    """
    SQLite task store.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection (the reminder loop reads from
      a background thread while the console writes from the main thread)
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except Exception:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS todos (
                    id TEXT PRIMARY KEY,
                    text TEXT NOT NULL,
                    priority TEXT NOT NULL DEFAULT 'medium',
                    status TEXT NOT NULL DEFAULT 'todo',
                    start_date TEXT,
                    due_date TEXT,
                    tags TEXT NOT NULL DEFAULT '[]',
                    description TEXT,
                    created_at REAL NOT NULL,
                    is_ai_generated INTEGER NOT NULL DEFAULT 0
                )
                """
            )

            cur.execute("PRAGMA table_info(todos)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE todos ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            # Older databases predate ranged tasks and AI subtasks.
            add_col("start_date", "TEXT")
            add_col("is_ai_generated", "INTEGER NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_todos_status_due ON todos(status, due_date)")
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _tags_to_str(tags: Iterable[str] | None) -> str:
        return json.dumps([str(t) for t in (tags or [])], ensure_ascii=False)

    @staticmethod
    def _str_to_tags(s: str | None) -> list[str]:
        if not s:
            return []
        try:
            val = json.loads(s)
        except ValueError:
            return []
        return [str(t) for t in val] if isinstance(val, list) else []

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            text=str(row["text"] or ""),
            status=TaskStatus.from_raw(row["status"]),
            priority=Priority.from_raw(row["priority"]),
            start_date=row["start_date"],
            due_date=row["due_date"],
            tags=self._str_to_tags(row["tags"]),
            description=row["description"],
            created_at=float(row["created_at"] or 0.0),
            is_ai_generated=bool(row["is_ai_generated"]),
        )

    # ---- public API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM todos").fetchone()
            return int(n)
        finally:
            conn.close()

    def add_task(
        self,
        *,
        text: str,
        priority: Priority = Priority.MEDIUM,
        status: TaskStatus = TaskStatus.TODO,
        start_date: str | None = None,
        due_date: str | None = None,
        tags: list[str] | None = None,
        description: str | None = None,
        is_ai_generated: bool = False,
        task_id: str | None = None,
    ) -> Task:
        if not text or not text.strip():
            raise ValueError("text is required")

        task = Task(
            id=task_id or str(uuid.uuid4()),
            text=text.strip(),
            status=status,
            priority=priority,
            start_date=start_date or None,
            due_date=due_date or None,
            tags=list(tags or []),
            description=description,
            created_at=time.time(),
            is_ai_generated=is_ai_generated,
        )
        self.add_tasks([task])
        logger.debug("Task added id=%s priority=%s due=%s", task.id, task.priority.value, task.due_date)
        return task

    def add_tasks(self, tasks: Iterable[Task]) -> int:
        rows = [
            (
                t.id,
                t.text,
                t.priority.value,
                t.status.value,
                t.start_date,
                t.due_date,
                self._tags_to_str(t.tags),
                t.description,
                t.created_at or time.time(),
                int(t.is_ai_generated),
            )
            for t in tasks
        ]
        if not rows:
            return 0

        conn = self._get_conn()
        try:
            conn.executemany(
                """
                INSERT INTO todos(
                    id, text, priority, status, start_date, due_date,
                    tags, description, created_at, is_ai_generated
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
            conn.commit()
            return len(rows)
        finally:
            conn.close()

    def get_task(self, task_id: str) -> Task | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM todos WHERE id = ?", (str(task_id),)).fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def find_task(self, prefix: str) -> Task | None:
        """Resolve a full id or a unique id prefix (console users type short ids)."""
        prefix = (prefix or "").strip()
        if not prefix:
            return None

        exact = self.get_task(prefix)
        if exact is not None:
            return exact

        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM todos WHERE id LIKE ? ORDER BY created_at LIMIT 2",
                (prefix.replace("%", "").replace("_", "") + "%",),
            ).fetchall()
        finally:
            conn.close()
        return self._row_to_task(rows[0]) if len(rows) == 1 else None

    def list_tasks(self, *, include_done: bool = True) -> list[Task]:
        """All tasks, newest first (the order the web task list shows)."""
        sql = "SELECT * FROM todos"
        if not include_done:
            sql += " WHERE status != 'done'"
        sql += " ORDER BY created_at DESC"

        conn = self._get_conn()
        try:
            return [self._row_to_task(r) for r in conn.execute(sql).fetchall()]
        finally:
            conn.close()

    def update_task_fields(
        self,
        task_id: str,
        *,
        text: str | None = None,
        status: TaskStatus | None = None,
        priority: Priority | None = None,
        start_date: str | None = _UNSET,
        due_date: str | None = _UNSET,
        tags: list[str] | None = None,
        description: str | None = _UNSET,
    ) -> bool:
        """
        Partial update. Date and description fields accept None to clear them,
        so "not passed" is a separate sentinel.
        """
        fields: list[str] = []
        params: list[Any] = []

        if text is not None:
            fields.append("text = ?")
            params.append(text.strip())
        if status is not None:
            fields.append("status = ?")
            params.append(status.value)
        if priority is not None:
            fields.append("priority = ?")
            params.append(priority.value)
        if start_date is not _UNSET:
            fields.append("start_date = ?")
            params.append(start_date or None)
        if due_date is not _UNSET:
            fields.append("due_date = ?")
            params.append(due_date or None)
        if tags is not None:
            fields.append("tags = ?")
            params.append(self._tags_to_str(tags))
        if description is not _UNSET:
            fields.append("description = ?")
            params.append(description)

        if not fields:
            return False

        params.append(str(task_id))
        conn = self._get_conn()
        try:
            cur = conn.execute(f"UPDATE todos SET {', '.join(fields)} WHERE id = ?", params)
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def delete_task(self, task_id: str) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM todos WHERE id = ?", (str(task_id),))
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()
