from typing import Any

from loguru import logger

from recipe_vault_chat.errors import UnknownToolError
from recipe_vault_chat.mcp.stdio_process import McpStdioProcess
from recipe_vault_chat.messages import ToolCall, ToolDefinition


class McpManager:
    """Manages the tool server processes and routes tool calls to their owner."""

    def __init__(self, server_configs: dict[str, dict[str, Any]], *, read_timeout: float = 60.0):
        self._servers: dict[str, McpStdioProcess] = {
            name: McpStdioProcess(
                name,
                config["command"],
                config.get("args", []),
                config.get("env") or {},
                read_timeout=read_timeout,
            )
            for name, config in server_configs.items()
        }
        self._registry: dict[str, str] = {}
        self._tools: list[ToolDefinition] = []

    @property
    def server_names(self) -> list[str]:
        return list(self._servers)

    @property
    def is_running(self) -> bool:
        return all(server.is_running for server in self._servers.values())

    @property
    def tools(self) -> list[ToolDefinition]:
        return list(self._tools)

    def server_for(self, tool_name: str) -> str | None:
        return self._registry.get(tool_name)

    async def start(self) -> None:
        """Start every server not already running and rebuild the tool catalog.

        If any server fails to come up, all of them are stopped before the
        error propagates, so a failed start leaves no processes behind.
        """
        restarted = False
        try:
            for server in self._servers.values():
                if server.is_running:
                    continue
                await server.start()
                restarted = True
        except BaseException:
            await self.stop()
            raise

        if restarted or not self._registry:
            self._rebuild_catalog()

    async def stop(self) -> None:
        for server in self._servers.values():
            try:
                await server.stop()
            except Exception as ex:
                logger.warning(f"MCP server '{server.name}' shutdown error: {ex}")
        self._registry.clear()
        self._tools.clear()

    async def execute_tool(self, tool_call: ToolCall) -> str:
        server_name = self._registry.get(tool_call.name)
        if server_name is None:
            raise UnknownToolError(tool_call.name)
        return await self._servers[server_name].execute_tool(tool_call)

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> str:
        return await self.execute_tool(ToolCall(id=f"internal-{name}", name=name, arguments=arguments or {}))

    def _rebuild_catalog(self) -> None:
        registry: dict[str, str] = {}
        by_name: dict[str, ToolDefinition] = {}
        for server_name, server in self._servers.items():
            for tool in server.tools:
                existing = registry.get(tool.name)
                if existing is not None:
                    logger.warning(
                        f"Duplicate tool '{tool.name}' found in servers '{existing}' and '{server_name}' - using latter"
                    )
                registry[tool.name] = server_name
                by_name[tool.name] = tool
        self._registry = registry
        self._tools = list(by_name.values())
