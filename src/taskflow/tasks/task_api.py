# src/taskflow/tasks/task_api.py

from __future__ import annotations

import json
import logging
import re
from typing import Any

from ..core.state import AppState
from .task_models import Priority, Task, TaskStatus

logger = logging.getLogger(__name__)

SUBTASKS_SYSTEM_PROMPT = (
    "You break tasks into subtasks. Reply with JSON only, shaped as "
    '{"subtasks": ["...", "..."]}, no markdown.'
)
DAILY_PLAN_SYSTEM_PROMPT = (
    "You are a productivity coach. Answer with one short motivating paragraph "
    "in plain text, no markdown formatting."
)
DAILY_PLAN_FALLBACK = "Focus on your highest priority task first."

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def _complete(state: AppState, prompt: str, system_prompt: str) -> str:
    return "".join(state.llm.stream_chat([{"role": "user", "content": prompt}], system_prompt)).strip()


def parse_subtasks(raw: str) -> list[str]:
    """Extract {"subtasks": [...]} from a model reply; anything unusable -> []."""
    m = _JSON_OBJECT.search(raw or "")
    if not m:
        return []
    try:
        data: Any = json.loads(m.group(0))
    except ValueError:
        return []
    items = data.get("subtasks") if isinstance(data, dict) else None
    if not isinstance(items, list):
        return []
    return [str(s).strip() for s in items if str(s).strip()]


def generate_subtasks(state: AppState, task_text: str) -> list[str]:
    prompt = (
        "Break down the following task into 3-5 smaller, actionable subtasks. "
        f'Keep them concise. Task: "{task_text}"'
    )
    try:
        return parse_subtasks(_complete(state, prompt, SUBTASKS_SYSTEM_PROMPT))
    except Exception:
        logger.warning("Subtask generation failed for %r", task_text, exc_info=True)
        return []


def breakdown_task(state: AppState, task: Task) -> list[Task]:
    """
    Ask the LLM for subtasks and store them as new AI-generated todo tasks.

    Returns the created tasks; an empty or failed reply creates nothing.
    """
    texts = generate_subtasks(state, task.text)
    if not texts:
        return []

    created = [
        state.task_store.add_task(
            text=text,
            priority=Priority.MEDIUM,
            status=TaskStatus.TODO,
            tags=["subtask"],
            is_ai_generated=True,
        )
        for text in texts
    ]
    logger.info("Breakdown for task_id=%s created %d subtask(s)", task.id, len(created))
    return created


def generate_daily_plan(state: AppState, task_texts: list[str]) -> str:
    if not task_texts:
        return DAILY_PLAN_FALLBACK

    prompt = (
        f"I have these tasks to do: [{', '.join(task_texts)}]. Create a concise, motivated "
        "1-paragraph summary plan on how I should tackle my day. Suggest which one to do "
        'first ("Eat the Frog").'
    )
    try:
        text = _complete(state, prompt, DAILY_PLAN_SYSTEM_PROMPT)
    except Exception:
        logger.warning("Daily plan generation failed", exc_info=True)
        return "Could not generate plan at this time."
    return text or DAILY_PLAN_FALLBACK
