from typing import Any

from recipe_vault_chat.errors import UnknownToolError
from recipe_vault_chat.messages import LlmResponse, Message, ToolCall, ToolDefinition


class ScriptedProvider:
    """Replays canned responses and records what it was asked."""

    def __init__(self, responses: list[LlmResponse | Exception]):
        self._responses = list(responses)
        self.requests: list[tuple[list[Message], list[ToolDefinition], str | None]] = []

    async def complete(self, messages, tools, system_prompt=None) -> LlmResponse:
        self.requests.append((list(messages), list(tools), system_prompt))
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class FakeMcpManager:
    def __init__(self, tools: dict[str, Any] | None = None):
        # name -> str result, Exception to raise, or callable(arguments) -> str
        self._handlers = dict(tools or {})
        self.running = False
        self.start_calls = 0
        self.stop_calls = 0
        self.executed: list[ToolCall] = []

    @property
    def is_running(self) -> bool:
        return self.running

    @property
    def tools(self) -> list[ToolDefinition]:
        return [
            ToolDefinition(name, f"{name} tool", {"type": "object", "properties": {}})
            for name in self._handlers
        ]

    async def start(self) -> None:
        self.start_calls += 1
        self.running = True

    async def stop(self) -> None:
        self.stop_calls += 1
        self.running = False

    async def execute_tool(self, tool_call: ToolCall) -> str:
        self.executed.append(tool_call)
        if tool_call.name not in self._handlers:
            raise UnknownToolError(tool_call.name)
        handler = self._handlers[tool_call.name]
        if isinstance(handler, Exception):
            raise handler
        if callable(handler):
            return handler(tool_call.arguments)
        return handler

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> str:
        return await self.execute_tool(ToolCall(id=f"internal-{name}", name=name, arguments=arguments or {}))
