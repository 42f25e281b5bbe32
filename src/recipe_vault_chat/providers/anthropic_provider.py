from typing import Any

import anthropic
from loguru import logger

from recipe_vault_chat.errors import LlmApiError, LlmInvalidResponseError, LlmTransportError
from recipe_vault_chat.messages import (
    AssistantMessage,
    LlmResponse,
    Message,
    TextBlock,
    ToolCall,
    ToolDefinition,
    UserMessage,
    build_llm_response,
)
from recipe_vault_chat.providers.common import parse_arguments, response_to_dict, status_error_body

_MAX_TOKENS = 4096


def _to_anthropic_message(message: Message) -> dict:
    if isinstance(message, UserMessage):
        content: list[dict] = []
        for block in message.content:
            if isinstance(block, TextBlock):
                content.append({"type": "text", "text": block.text})
            else:
                content.append({
                    "type": "image",
                    "source": {
                        "type": block.source_type,
                        "media_type": block.media_type,
                        "data": block.data,
                    },
                })
        return {"role": "user", "content": content}

    if isinstance(message, AssistantMessage):
        blocks: list[dict] = []
        if message.content:
            blocks.append({"type": "text", "text": message.content})
        for call in message.tool_calls or []:
            blocks.append({
                "type": "tool_use",
                "id": call.id,
                "name": call.name,
                "input": call.arguments,
            })
        return {"role": "assistant", "content": blocks}

    # Tool results travel back as a user turn of tool_result blocks.
    return {
        "role": "user",
        "content": [
            {
                "type": "tool_result",
                "tool_use_id": r.tool_use_id,
                "content": r.content,
                "is_error": r.is_error,
            }
            for r in message.tool_results
        ],
    }


def _to_anthropic_tools(tools: list[ToolDefinition]) -> list[dict]:
    return [
        {
            "name": t.name,
            "description": t.description,
            "input_schema": t.input_schema,
        }
        for t in tools
    ]


def build_anthropic_request(
    model: str,
    messages: list[Message],
    tools: list[ToolDefinition],
    system_prompt: str | None,
    *,
    max_tokens: int = _MAX_TOKENS,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "model": model,
        "max_tokens": max_tokens,
        "messages": [_to_anthropic_message(m) for m in messages],
    }
    if system_prompt:
        body["system"] = system_prompt
    if tools:
        body["tools"] = _to_anthropic_tools(tools)
    return body


def parse_anthropic_response(data: dict[str, Any]) -> LlmResponse:
    content = data.get("content")
    if not isinstance(content, list):
        raise LlmInvalidResponseError("Missing content array")

    text_parts: list[str] = []
    tool_calls: list[ToolCall] = []
    for block in content:
        if not isinstance(block, dict):
            continue
        block_type = block.get("type")
        if block_type == "text":
            text = block.get("text")
            if isinstance(text, str):
                text_parts.append(text)
        elif block_type == "tool_use":
            tool_calls.append(ToolCall(
                id=str(block.get("id") or ""),
                name=str(block.get("name") or ""),
                arguments=parse_arguments(block.get("input")),
            ))

    return build_llm_response("".join(text_parts), tool_calls)


class AnthropicProvider:
    def __init__(self, api_key: str, model: str, *, timeout: float = 120.0, max_tokens: int = _MAX_TOKENS):
        # Retries belong to the caller (see RetryingProvider).
        self._client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self._model = model
        self._max_tokens = max_tokens

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system_prompt: str | None = None,
    ) -> LlmResponse:
        body = build_anthropic_request(
            self._model, messages, tools, system_prompt, max_tokens=self._max_tokens,
        )
        logger.debug(
            f"API request: provider=anthropic, model={self._model}, "
            f"messages={len(body['messages'])}, tools={len(tools)}"
        )
        try:
            response = await self._client.messages.create(**body)
        except anthropic.APIStatusError as ex:
            raise LlmApiError(ex.status_code, status_error_body(ex)) from ex
        except anthropic.APIConnectionError as ex:
            raise LlmTransportError(f"HTTP request failed: {ex}") from ex
        except anthropic.APIResponseValidationError as ex:
            raise LlmInvalidResponseError(str(ex)) from ex

        data = response_to_dict(response)
        usage = data.get("usage") or {}
        logger.debug(
            f"API response: stop_reason={data.get('stop_reason')}, "
            f"input_tokens={usage.get('input_tokens')}, output_tokens={usage.get('output_tokens')}"
        )
        return parse_anthropic_response(data)
