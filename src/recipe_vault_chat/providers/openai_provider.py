import json
from typing import Any

import openai
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


def _to_openai_messages(system_prompt: str | None, messages: list[Message]) -> list[dict]:
    """Convert internal messages to OpenAI chat format."""
    out: list[dict] = []

    if system_prompt:
        out.append({"role": "system", "content": system_prompt})

    for msg in messages:
        if isinstance(msg, UserMessage):
            # A lone text block goes out as a plain string
            if len(msg.content) == 1 and isinstance(msg.content[0], TextBlock):
                out.append({"role": "user", "content": msg.content[0].text})
                continue
            parts: list[dict] = []
            for block in msg.content:
                if isinstance(block, TextBlock):
                    parts.append({"type": "text", "text": block.text})
                else:
                    parts.append({
                        "type": "image_url",
                        "image_url": {"url": f"data:{block.media_type};base64,{block.data}"},
                    })
            out.append({"role": "user", "content": parts})

        elif isinstance(msg, AssistantMessage):
            oai_msg: dict = {"role": "assistant", "content": msg.content or ""}
            if msg.tool_calls:
                oai_msg["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": json.dumps(call.arguments),
                        },
                    }
                    for call in msg.tool_calls
                ]
            out.append(oai_msg)

        else:
            # One tool message per result
            for result in msg.tool_results:
                out.append({
                    "role": "tool",
                    "tool_call_id": result.tool_use_id,
                    "content": result.content,
                })

    return out


def _to_openai_tools(tools: list[ToolDefinition]) -> list[dict]:
    return [
        {
            "type": "function",
            "function": {
                "name": t.name,
                "description": t.description,
                "parameters": t.input_schema,
            },
        }
        for t in tools
    ]


def build_openai_request(
    model: str,
    messages: list[Message],
    tools: list[ToolDefinition],
    system_prompt: str | None,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "model": model,
        "messages": _to_openai_messages(system_prompt, messages),
    }
    if tools:
        body["tools"] = _to_openai_tools(tools)
    return body


def parse_openai_response(data: dict[str, Any]) -> LlmResponse:
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        raise LlmInvalidResponseError("Missing choices")
    message = choices[0].get("message")
    if not isinstance(message, dict):
        raise LlmInvalidResponseError("Missing message")

    content = message.get("content")
    text = content if isinstance(content, str) else ""

    tool_calls: list[ToolCall] = []
    for call in message.get("tool_calls") or []:
        if not isinstance(call, dict):
            continue
        function = call.get("function")
        call_id = call.get("id")
        if not isinstance(function, dict) or not isinstance(call_id, str):
            logger.warning(f"Skipping malformed tool call: {call!r:.200}")
            continue
        name = function.get("name")
        if not isinstance(name, str):
            logger.warning(f"Skipping tool call without a name: {call_id}")
            continue
        tool_calls.append(ToolCall(
            id=call_id,
            name=name,
            arguments=parse_arguments(function.get("arguments")),
        ))

    return build_llm_response(text, tool_calls)


class OpenAIProvider:
    def __init__(self, api_key: str, model: str, *, timeout: float = 120.0):
        self._client = openai.AsyncOpenAI(api_key=api_key, timeout=timeout, max_retries=0)
        self._model = model

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system_prompt: str | None = None,
    ) -> LlmResponse:
        body = build_openai_request(self._model, messages, tools, system_prompt)
        logger.debug(
            f"API request: provider=openai, model={self._model}, "
            f"messages={len(body['messages'])}, tools={len(tools)}"
        )
        try:
            response = await self._client.chat.completions.create(**body)
        except openai.APIStatusError as ex:
            raise LlmApiError(ex.status_code, status_error_body(ex)) from ex
        except openai.APIConnectionError as ex:
            raise LlmTransportError(f"HTTP request failed: {ex}") from ex
        except openai.APIResponseValidationError as ex:
            raise LlmInvalidResponseError(str(ex)) from ex

        data = response_to_dict(response)
        choices = data.get("choices") or [{}]
        finish_reason = choices[0].get("finish_reason") if isinstance(choices[0], dict) else None
        logger.debug(f"API response: finish_reason={finish_reason}")
        return parse_openai_response(data)
