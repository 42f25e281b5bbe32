from __future__ import annotations

from collections.abc import Awaitable, Callable

from loguru import logger

from recipe_vault_chat.errors import ToolRoundLimitError
from recipe_vault_chat.messages import (
    AssistantMessage,
    Message,
    TextResponse,
    TextWithToolUseResponse,
    ToolCall,
    ToolDefinition,
    ToolMessage,
    ToolResult,
)
from recipe_vault_chat.provider import LLMProvider


class TurnEngine:
    """Runs one user turn: alternate completions and tool rounds until the model answers in text."""

    def __init__(
        self,
        *,
        provider: LLMProvider,
        system_prompt: str,
        max_tool_rounds: int,
        on_execute_tool: Callable[[ToolCall], Awaitable[str]],
        on_tool_started: Callable[[ToolCall], None] | None = None,
        on_tool_completed: Callable[[ToolCall, bool], None] | None = None,
    ) -> None:
        self._provider = provider
        self._system_prompt = system_prompt
        self._max_tool_rounds = max_tool_rounds
        self._on_execute_tool = on_execute_tool
        self._on_tool_started = on_tool_started
        self._on_tool_completed = on_tool_completed

    async def run(self, *, messages: list[Message], tools: list[ToolDefinition]) -> str:
        """Drive the turn, appending assistant and tool messages to ``messages`` in place.

        Returns the final text. A non-empty final text is also appended as a
        closing assistant message.
        """
        tool_rounds = 0

        while True:
            response = await self._provider.complete(messages, tools, self._system_prompt)

            if isinstance(response, TextResponse):
                if response.text:
                    messages.append(AssistantMessage(content=response.text))
                return response.text

            if tool_rounds >= self._max_tool_rounds:
                logger.error(f"Tool round limit reached ({self._max_tool_rounds}); ending turn")
                raise ToolRoundLimitError(self._max_tool_rounds)
            tool_rounds += 1

            interim_text = response.text if isinstance(response, TextWithToolUseResponse) else None
            tool_calls = list(response.tool_calls)
            logger.info(
                f"Tool round {tool_rounds}: {', '.join(c.name for c in tool_calls)}"
            )

            results = await self.execute_tools(tool_calls)
            messages.append(AssistantMessage(content=interim_text or None, tool_calls=tool_calls))
            messages.append(ToolMessage(tool_results=results))

    async def execute_tools(self, tool_calls: list[ToolCall]) -> list[ToolResult]:
        """Execute calls one after another in the order the model issued them."""
        results: list[ToolResult] = []
        for call in tool_calls:
            if self._on_tool_started is not None:
                self._on_tool_started(call)
            try:
                content = await self._on_execute_tool(call)
                result = ToolResult(tool_use_id=call.id, content=content)
            except Exception as ex:
                logger.warning(f"Tool '{call.name}' (id={call.id}) failed: {ex}")
                result = ToolResult(tool_use_id=call.id, content=f"Error: {ex}", is_error=True)
            if self._on_tool_completed is not None:
                self._on_tool_completed(call, result.is_error)
            results.append(result)
        return results
