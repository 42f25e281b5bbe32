from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from recipe_vault_chat.agent_config import AgentConfig
from recipe_vault_chat.mcp.mcp_manager import McpManager
from recipe_vault_chat.messages import (
    Message,
    TextBlock,
    ToolCall,
    ToolDefinition,
    UserMessage,
)
from recipe_vault_chat.native_tools import TurnOutputs, build_native_tools
from recipe_vault_chat.system_prompt import TOOL_REMINDER
from recipe_vault_chat.turn_engine import TurnEngine

# Conversations this long start to drift away from the tool-use rules.
_REMINDER_MIN_MESSAGES = 5


@dataclass
class ChatResult:
    text: str
    tools_used: list[str] = field(default_factory=list)
    recipe_ids: list[str] = field(default_factory=list)
    timers: list[tuple[float, str]] = field(default_factory=list)
    new_messages: list[Message] = field(default_factory=list)


def with_tool_reminder(messages: list[Message]) -> list[Message]:
    """Copy of ``messages`` with the reminder appended to the trailing user message's last text block."""
    working = list(messages)
    if len(working) < _REMINDER_MIN_MESSAGES or not isinstance(working[-1], UserMessage):
        return working

    content = list(working[-1].content)
    for i in range(len(content) - 1, -1, -1):
        block = content[i]
        if isinstance(block, TextBlock):
            content[i] = TextBlock(block.text + TOOL_REMINDER)
            working[-1] = dataclasses.replace(working[-1], content=content)
            break
    return working


class Agent:
    """Turns a conversation history into the next assistant reply, calling tools along the way.

    One agent is shared by every conversation. It holds no per-conversation
    state: each :meth:`chat` call works on its own copy of the history.
    """

    def __init__(self, config: AgentConfig, *, mcp_manager: Any = None):
        self._provider = config.provider
        self._system_prompt = config.system_prompt
        self._max_tool_rounds = config.max_tool_rounds
        self._inject_tool_reminder = config.inject_tool_reminder
        self._mcp_manager = mcp_manager if mcp_manager is not None else McpManager(
            config.mcp_server_configs,
            read_timeout=config.mcp_read_timeout,
        )
        self._native_tools = build_native_tools(self._mcp_manager.call_tool)

    @property
    def mcp_manager(self) -> Any:
        return self._mcp_manager

    @property
    def tools(self) -> list[ToolDefinition]:
        """MCP tools followed by native tools; a native tool replaces a server tool of the same name."""
        merged: dict[str, ToolDefinition] = {}
        for tool in self._mcp_manager.tools:
            merged[tool.name] = tool
        for name, native in self._native_tools.items():
            if name in merged:
                logger.warning(f"Native tool '{name}' shadows the MCP tool of the same name")
                del merged[name]
            merged[name] = native.definition
        return list(merged.values())

    async def start(self) -> None:
        await self._mcp_manager.start()
        logger.info(f"Agent started with {len(self.tools)} tool(s)")

    async def stop(self) -> None:
        await self._mcp_manager.stop()

    async def chat(self, conversation: list[Message]) -> ChatResult:
        if not self._mcp_manager.is_running:
            await self.start()

        if self._inject_tool_reminder:
            messages = with_tool_reminder(conversation)
        else:
            messages = list(conversation)

        outputs = TurnOutputs()
        tools_used: list[str] = []

        async def execute_tool(call: ToolCall) -> str:
            native = self._native_tools.get(call.name)
            if native is not None:
                return await native.execute(call.arguments, outputs)
            return await self._mcp_manager.execute_tool(call)

        engine = TurnEngine(
            provider=self._provider,
            system_prompt=self._system_prompt,
            max_tool_rounds=self._max_tool_rounds,
            on_execute_tool=execute_tool,
            on_tool_started=lambda call: tools_used.append(call.name),
        )
        text = await engine.run(messages=messages, tools=self.tools)

        return ChatResult(
            text=text,
            tools_used=tools_used,
            recipe_ids=outputs.recipe_ids,
            timers=outputs.timers,
            new_messages=messages[len(conversation):],
        )
