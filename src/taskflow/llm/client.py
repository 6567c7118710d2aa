# src/taskflow/llm/client.py

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from typing import Any

import httpx
import openai
from openai import OpenAI

from ..core.ports import ChatMessage

logger = logging.getLogger(__name__)

# Models that returned 404 are skipped for an hour.
_BAD_MODEL_TTL_SECONDS = 3600.0


def _is_auth_error(exc: Exception) -> bool:
    return isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError))


def _is_rate_limit_error(exc: Exception) -> bool:
    return isinstance(exc, openai.RateLimitError)


def _is_connection_error(exc: Exception) -> bool:
    # APITimeoutError is a subclass of APIConnectionError.
    return isinstance(exc, openai.APIConnectionError)


def _is_not_found_error(exc: Exception) -> bool:
    return isinstance(exc, openai.NotFoundError)


class OpenRouterLLMClient:
    """
    OpenAI-compatible streaming client with model fallback.

    - Tries models in the configured order.
    - 404 (model not available) -> remember and try next.
    - Rate limit / network issues -> try next.
    - Auth issues -> fail fast.
    """

    def __init__(self, settings, *, connect_timeout: float = 5.0, read_timeout: float = 25.0) -> None:
        api_key = getattr(settings, "openrouter_api_key", None)
        base_url = (getattr(settings, "openrouter_base_url", "") or "").strip()

        if not api_key or not str(api_key).strip():
            raise RuntimeError("LLM API key is not set. Set TASKFLOW_OPENROUTER_API_KEY in your .env.")
        if not base_url:
            raise RuntimeError("LLM base URL is not set. Set TASKFLOW_OPENROUTER_BASE_URL in your .env.")

        self._models: list[str] = [m.strip() for m in (getattr(settings, "llm_models", []) or []) if m.strip()]
        self._headers: dict[str, str] = dict(getattr(settings, "extra_headers", {}) or {})
        self._bad_models: dict[str, float] = {}

        # No SDK retries: falling back to the next model is faster.
        self._client = OpenAI(
            base_url=base_url,
            api_key=str(api_key),
            timeout=httpx.Timeout(connect=connect_timeout, read=read_timeout, write=10.0, pool=connect_timeout),
            max_retries=0,
        )

    def stream_chat(self, messages: list[ChatMessage], system_prompt: str) -> Iterable[str]:
        if not self._models:
            raise RuntimeError("LLM model list is empty. Set TASKFLOW_LLM_MODELS in your .env.")

        last_error: Exception | None = None
        now = time.monotonic()

        for model in self._models:
            retry_at = self._bad_models.get(model)
            if retry_at is not None and retry_at > now:
                continue

            logger.info("LLM: trying model=%s", model)
            stream: Any = None
            used_any = False
            try:
                stream = self._client.chat.completions.create(
                    model=model,
                    stream=True,
                    extra_headers=self._headers or None,
                    messages=[{"role": "system", "content": system_prompt}, *messages],
                )
                for chunk in stream:
                    try:
                        content = chunk.choices[0].delta.content
                    except (AttributeError, IndexError):
                        content = None
                    if content:
                        used_any = True
                        yield content

                if used_any:
                    return
                last_error = RuntimeError(f"Model returned no content: {model}")

            except Exception as e:
                last_error = e

                if _is_auth_error(e):
                    raise RuntimeError(
                        "LLM authentication failed. Check your API key (TASKFLOW_OPENROUTER_API_KEY)."
                    ) from e

                if _is_not_found_error(e):
                    self._bad_models[model] = time.monotonic() + _BAD_MODEL_TTL_SECONDS
                    logger.info("LLM: model not available (404): %s", model)
                elif _is_rate_limit_error(e):
                    logger.info("LLM: rate-limited on model=%s, trying next", model)
                elif _is_connection_error(e):
                    logger.info("LLM: network/timeout error on model=%s, trying next", model)
                else:
                    logger.info("LLM: error on model=%s (%s), trying next", model, e.__class__.__name__)

                # Partial output cannot be un-yielded; stop here instead of mixing models.
                if used_any:
                    return
            finally:
                if stream is not None:
                    close = getattr(stream, "close", None)
                    if callable(close):
                        close()

        if last_error is not None and _is_rate_limit_error(last_error):
            raise RuntimeError("LLM is rate-limited. Try again later.") from last_error
        raise RuntimeError("All LLM models failed.") from last_error
