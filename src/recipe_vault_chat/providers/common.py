from __future__ import annotations

import json
from typing import Any

from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from recipe_vault_chat.errors import LlmInvalidResponseError, LlmTransportError
from recipe_vault_chat.messages import LlmResponse, Message, ToolDefinition


def _on_retry(retry_state):
    attempt = retry_state.attempt_number
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    reason = type(exc).__name__ if exc else "Unknown"
    logger.warning(f"{reason}. Retrying in {wait:.0f}s (attempt {attempt})...")


def default_retry_kwargs(exception_types: tuple[type[Exception], ...], max_attempts: int) -> dict:
    return {
        "retry": retry_if_exception_type(exception_types),
        "wait": wait_exponential(multiplier=2, min=2, max=30),
        "stop": stop_after_attempt(max_attempts),
        "before_sleep": _on_retry,
        "reraise": True,
    }


class RetryingProvider:
    """Caller-side retry around a provider's complete().

    Only transport failures are retried. A completion has no side effects,
    so this never re-executes tool calls.
    """

    def __init__(self, inner: Any, max_attempts: int, *, retry_kwargs: dict | None = None):
        self._inner = inner
        self._max_attempts = max(1, max_attempts)
        self._retry_kwargs = retry_kwargs or default_retry_kwargs((LlmTransportError,), self._max_attempts)

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system_prompt: str | None = None,
    ) -> LlmResponse:
        retrying = AsyncRetrying(**self._retry_kwargs)
        return await retrying(self._inner.complete, messages, tools, system_prompt)


def response_to_dict(response: Any) -> dict[str, Any]:
    """SDK responses are pydantic models; tests hand in plain dicts."""
    if isinstance(response, dict):
        return response
    dump = getattr(response, "model_dump", None)
    if callable(dump):
        data = dump()
        if isinstance(data, dict):
            return data
    raise LlmInvalidResponseError(f"Unexpected response type: {type(response).__name__}")


def parse_arguments(raw: Any) -> dict[str, Any]:
    """Tool-call arguments: a JSON object, or {} when absent or malformed."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str) and raw.strip():
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Failed to parse tool call arguments: {raw[:200]}")
            return {}
        if isinstance(parsed, dict):
            return parsed
    return {}


def status_error_body(ex: Any) -> str:
    response = getattr(ex, "response", None)
    text = getattr(response, "text", None)
    if isinstance(text, str) and text:
        return text
    body = getattr(ex, "body", None)
    if body is not None:
        return json.dumps(body) if not isinstance(body, str) else body
    return str(ex)
