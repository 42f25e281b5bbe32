import asyncio
import json
import unittest

import httpx
import openai

from recipe_vault_chat.errors import LlmApiError, LlmInvalidResponseError, LlmTransportError
from recipe_vault_chat.messages import (
    AssistantMessage,
    ImageBlock,
    TextBlock,
    TextResponse,
    TextWithToolUseResponse,
    ToolCall,
    ToolDefinition,
    ToolMessage,
    ToolResult,
    ToolUseResponse,
    UserMessage,
)
from recipe_vault_chat.providers.openai_provider import (
    OpenAIProvider,
    _to_openai_messages,
    build_openai_request,
    parse_openai_response,
)

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class _FakeCompletions:
    def __init__(self, response=None, error: Exception | None = None):
        self._response = response
        self._error = error
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self._error is not None:
            raise self._error
        return self._response


class _FakeClient:
    def __init__(self, response=None, error: Exception | None = None):
        self.completions = _FakeCompletions(response, error)
        self.chat = self


def _make_provider(response=None, error: Exception | None = None) -> OpenAIProvider:
    provider = OpenAIProvider.__new__(OpenAIProvider)
    provider._client = _FakeClient(response, error)
    provider._model = "gpt-test"
    return provider


class ToOpenAIMessagesTests(unittest.TestCase):
    def test_system_prompt_becomes_system_message(self) -> None:
        result = _to_openai_messages("You are helpful.", [])
        self.assertEqual([{"role": "system", "content": "You are helpful."}], result)

    def test_single_text_user_message_collapses_to_string(self) -> None:
        result = _to_openai_messages(None, [UserMessage.from_text("List my recipes.")])
        self.assertEqual([{"role": "user", "content": "List my recipes."}], result)

    def test_images_become_data_urls(self) -> None:
        message = UserMessage(content=[TextBlock("what is this?"), ImageBlock("image/jpeg", "AAAA")])
        result = _to_openai_messages(None, [message])
        self.assertEqual(
            [
                {"type": "text", "text": "what is this?"},
                {"type": "image_url", "image_url": {"url": "data:image/jpeg;base64,AAAA"}},
            ],
            result[0]["content"],
        )

    def test_assistant_tool_calls_and_one_tool_message_per_result(self) -> None:
        calls = [
            ToolCall(id="c1", name="list_recipes", arguments={}),
            ToolCall(id="c2", name="get_recipe", arguments={"recipe_id": "r1"}),
        ]
        result = _to_openai_messages(None, [
            AssistantMessage(tool_calls=calls),
            ToolMessage(tool_results=[ToolResult("c1", "[]"), ToolResult("c2", "Error: nope", is_error=True)]),
        ])

        assistant, first, second = result
        self.assertEqual("", assistant["content"])
        self.assertEqual("function", assistant["tool_calls"][1]["type"])
        self.assertEqual({"recipe_id": "r1"}, json.loads(assistant["tool_calls"][1]["function"]["arguments"]))
        self.assertEqual({"role": "tool", "tool_call_id": "c1", "content": "[]"}, first)
        self.assertEqual({"role": "tool", "tool_call_id": "c2", "content": "Error: nope"}, second)


class BuildOpenAIRequestTests(unittest.TestCase):
    def test_tools_present_and_omitted(self) -> None:
        tool = ToolDefinition("list_recipes", "List", {"type": "object", "properties": {}})
        with_tools = build_openai_request("gpt-test", [UserMessage.from_text("hi")], [tool], None)
        without_tools = build_openai_request("gpt-test", [UserMessage.from_text("hi")], [], None)

        self.assertEqual(
            [{"type": "function", "function": {"name": "list_recipes", "description": "List", "parameters": {"type": "object", "properties": {}}}}],
            with_tools["tools"],
        )
        self.assertNotIn("tools", without_tools)


class ParseOpenAIResponseTests(unittest.TestCase):
    def test_text(self) -> None:
        data = {"choices": [{"message": {"role": "assistant", "content": "Hello"}, "finish_reason": "stop"}]}
        self.assertEqual(TextResponse("Hello"), parse_openai_response(data))

    def test_tool_calls_with_string_arguments(self) -> None:
        data = {"choices": [{"message": {
            "content": None,
            "tool_calls": [
                {"id": "c1", "type": "function", "function": {"name": "get_recipe", "arguments": '{"recipe_id": "r1"}'}},
                {"id": "c2", "type": "function", "function": {"name": "list_recipes", "arguments": "not json"}},
                {"type": "function", "function": {"name": "missing_id"}},
            ],
        }}]}

        response = parse_openai_response(data)

        self.assertEqual(
            ToolUseResponse([ToolCall("c1", "get_recipe", {"recipe_id": "r1"}), ToolCall("c2", "list_recipes", {})]),
            response,
        )

    def test_text_with_tool_calls(self) -> None:
        data = {"choices": [{"message": {
            "content": "Checking.",
            "tool_calls": [{"id": "c1", "type": "function", "function": {"name": "list_recipes", "arguments": "{}"}}],
        }}]}
        self.assertIsInstance(parse_openai_response(data), TextWithToolUseResponse)

    def test_missing_choices_is_invalid(self) -> None:
        with self.assertRaises(LlmInvalidResponseError):
            parse_openai_response({"choices": []})
        with self.assertRaises(LlmInvalidResponseError):
            parse_openai_response({"choices": [{"finish_reason": "stop"}]})


class OpenAIProviderTests(unittest.TestCase):
    def test_complete(self) -> None:
        provider = _make_provider({"choices": [{"message": {"content": "Hi"}, "finish_reason": "stop"}]})

        response = asyncio.run(provider.complete([UserMessage.from_text("hi")], [], "sys"))

        self.assertEqual(TextResponse("Hi"), response)
        sent = provider._client.completions.calls[0]
        self.assertEqual("gpt-test", sent["model"])
        self.assertEqual({"role": "system", "content": "sys"}, sent["messages"][0])

    def test_status_error_maps_to_api_error(self) -> None:
        error = openai.APIStatusError(
            "bad key",
            response=httpx.Response(401, text="invalid api key", request=_REQUEST),
            body=None,
        )
        provider = _make_provider(error=error)

        with self.assertRaises(LlmApiError) as ctx:
            asyncio.run(provider.complete([UserMessage.from_text("hi")], []))

        self.assertEqual(401, ctx.exception.status_code)
        self.assertEqual("invalid api key", ctx.exception.body)

    def test_connection_error_maps_to_transport_error(self) -> None:
        provider = _make_provider(error=openai.APIConnectionError(request=_REQUEST))
        with self.assertRaises(LlmTransportError):
            asyncio.run(provider.complete([UserMessage.from_text("hi")], []))


if __name__ == "__main__":
    unittest.main()
