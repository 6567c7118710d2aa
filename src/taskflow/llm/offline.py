# src/taskflow/llm/offline.py

from __future__ import annotations

from collections.abc import Iterable

from ..core.ports import ChatMessage


class OfflineLLMClient:
    """
    Offline deterministic LLM client used when no external API is configured.

    - Subtask prompts -> an empty subtask list (nothing gets created)
    - Anything else -> a short note that AI is offline
    """

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        sp = (system_prompt or "").lower()

        if "subtasks" in sp:
            yield '{"subtasks": []}'
            return

        yield "AI is offline: set TASKFLOW_OPENROUTER_API_KEY to enable planning."
