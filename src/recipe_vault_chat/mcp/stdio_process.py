import asyncio
import json
import os
from typing import Any

from loguru import logger

from recipe_vault_chat.errors import (
    McpError,
    McpNotRespondingError,
    McpProcessExitedError,
    McpProcessNotRunningError,
    McpProtocolError,
    McpRpcError,
    McpToolError,
)
from recipe_vault_chat.messages import ToolCall, ToolDefinition

PROTOCOL_VERSION = "2024-11-05"
CLIENT_NAME = "recipe-vault-web"
CLIENT_VERSION = "0.1.0"

_DEFAULT_READ_TIMEOUT = 60.0
_SHUTDOWN_TIMEOUT = 5.0
# Tool results (a full recipe, a fetched web page) easily exceed asyncio's 64 KiB line default.
_STREAM_LIMIT = 16 * 1024 * 1024

_EMPTY_SCHEMA = {"type": "object", "properties": {}}


def parse_tool_definitions(result: Any) -> list[ToolDefinition]:
    """Read a tools/list result, skipping entries without a usable name."""
    raw_tools = result.get("tools") if isinstance(result, dict) else None
    if not isinstance(raw_tools, list):
        return []
    tools: list[ToolDefinition] = []
    for raw in raw_tools:
        if not isinstance(raw, dict) or not isinstance(raw.get("name"), str):
            logger.warning(f"Ignoring malformed tool definition: {raw!r:.200}")
            continue
        description = raw.get("description")
        schema = raw.get("inputSchema")
        tools.append(ToolDefinition(
            name=raw["name"],
            description=description if isinstance(description, str) else "",
            input_schema=schema if isinstance(schema, dict) else dict(_EMPTY_SCHEMA),
        ))
    return tools


def extract_tool_text(result: Any) -> str:
    """First text block of a tools/call result, or the whole result pretty-printed."""
    if isinstance(result, dict):
        content = result.get("content")
        if isinstance(content, list) and content and isinstance(content[0], dict):
            text = content[0].get("text")
            if isinstance(text, str) and text:
                return text
    return json.dumps(result, indent=2)


class McpStdioProcess:
    """One MCP tool server child process spoken to over line-delimited JSON-RPC.

    Every exchange holds ``_lock`` from the write until the response line is
    read: the pipes are not multiplexed, so this allows one request in flight.
    Lifecycle changes (spawn, handshake, kill) go through ``_lifecycle_lock``.
    """

    def __init__(
        self,
        name: str,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        *,
        read_timeout: float = _DEFAULT_READ_TIMEOUT,
    ):
        self.name = name
        self._command = command
        self._args = list(args or [])
        self._env = dict(env or {})
        self._read_timeout = read_timeout
        self._process: asyncio.subprocess.Process | None = None
        self._request_id = 0
        self._tools: tuple[ToolDefinition, ...] = ()
        self._lock = asyncio.Lock()
        self._lifecycle_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def tools(self) -> tuple[ToolDefinition, ...]:
        return self._tools

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    async def start(self) -> None:
        async with self._lifecycle_lock:
            if self.is_running:
                return
            if self._process is not None:
                logger.warning(
                    f"MCP server '{self.name}' exited with code {self._process.returncode}; restarting"
                )
                await self._terminate()

            # Preserve the parent environment and layer per-server overrides on top.
            merged_env = dict(os.environ)
            merged_env.update(self._env)
            logger.info(f"Starting MCP server: {self.name} ({self._command} {' '.join(self._args)})".rstrip())
            try:
                self._process = await asyncio.create_subprocess_exec(
                    self._command,
                    *self._args,
                    stdin=asyncio.subprocess.PIPE,
                    stdout=asyncio.subprocess.PIPE,
                    env=merged_env,
                    limit=_STREAM_LIMIT,
                )
            except OSError as ex:
                raise McpError(f"Failed to spawn MCP server '{self.name}': {ex}") from ex
            self._request_id = 0

            try:
                await self._handshake()
            except BaseException:
                await self._terminate()
                raise
            logger.info(f"MCP server '{self.name}': {len(self._tools)} tool(s) discovered")

    async def stop(self) -> None:
        async with self._lifecycle_lock:
            if self._process is not None:
                logger.info(f"Stopping MCP server: {self.name}")
            await self._terminate()

    async def call(self, method: str, params: Any = None) -> Any:
        async with self._lock:
            process = self._require_process()
            self._request_id += 1
            request_id = self._request_id
            logger.debug(f"MCP request: server={self.name}, method={method}, id={request_id}")
            await self._write_message(process, {
                "jsonrpc": "2.0",
                "method": method,
                "params": params if params is not None else {},
                "id": request_id,
            })
            line = await self._read_line(process)

        response = self._parse_response(line)
        if response.get("id") != request_id:
            logger.warning(
                f"MCP server '{self.name}' answered id={response.get('id')!r} to request id={request_id}"
            )
        error = response.get("error")
        if error is not None:
            code = error.get("code", 0) if isinstance(error, dict) else 0
            message = error.get("message", "") if isinstance(error, dict) else str(error)
            raise McpRpcError(int(code), str(message))
        logger.debug(f"MCP response: server={self.name}, id={request_id}")
        return response.get("result")

    async def notify(self, method: str, params: Any = None) -> None:
        async with self._lock:
            process = self._require_process()
            logger.debug(f"MCP notification: server={self.name}, method={method}")
            await self._write_message(process, {
                "jsonrpc": "2.0",
                "method": method,
                "params": params if params is not None else {},
            })

    async def execute_tool(self, tool_call: ToolCall) -> str:
        result = await self.call("tools/call", {"name": tool_call.name, "arguments": tool_call.arguments})
        text = extract_tool_text(result)
        if isinstance(result, dict) and result.get("isError") is True:
            raise McpToolError(text)
        return text

    async def _handshake(self) -> None:
        await self.call("initialize", {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": {"name": CLIENT_NAME, "version": CLIENT_VERSION},
        })
        await self.notify("notifications/initialized", {})
        self._tools = tuple(parse_tool_definitions(await self.call("tools/list", {})))

    def _require_process(self) -> asyncio.subprocess.Process:
        process = self._process
        if process is None or process.stdin is None or process.stdout is None:
            raise McpProcessNotRunningError(self.name)
        if process.returncode is not None:
            raise McpProcessExitedError(
                f"MCP server '{self.name}' exited with code {process.returncode}"
            )
        return process

    async def _write_message(self, process: asyncio.subprocess.Process, message: dict) -> None:
        data = json.dumps(message).encode("utf-8") + b"\n"
        try:
            process.stdin.write(data)
            await process.stdin.drain()
        except (OSError, RuntimeError) as ex:
            await self._terminate()
            raise McpProcessExitedError(f"Failed to write to MCP server '{self.name}': {ex}") from ex

    async def _read_line(self, process: asyncio.subprocess.Process) -> bytes:
        try:
            line = await asyncio.wait_for(process.stdout.readline(), timeout=self._read_timeout)
        except asyncio.TimeoutError:
            # A late reply would be read as the answer to the next request; drop the process.
            logger.error(f"MCP server '{self.name}' did not respond within {self._read_timeout:.0f}s")
            await self._terminate()
            raise McpNotRespondingError(
                f"MCP server '{self.name}' did not respond within {self._read_timeout:.0f}s"
            ) from None
        except ValueError as ex:
            # The rest of the line is still in the pipe, so the stream cannot be resynchronized.
            await self._terminate()
            raise McpProtocolError(f"Response line from MCP server '{self.name}' is too long") from ex
        except OSError as ex:
            await self._terminate()
            raise McpProcessExitedError(f"Failed to read from MCP server '{self.name}': {ex}") from ex
        if not line:
            # Reap it now so is_running turns false and the next start() respawns.
            await self._terminate()
            raise McpProcessExitedError(f"MCP server '{self.name}' closed its output")
        return line

    def _parse_response(self, line: bytes) -> dict:
        try:
            response = json.loads(line)
        except (json.JSONDecodeError, UnicodeDecodeError) as ex:
            raise McpProtocolError(
                f"Malformed JSON-RPC response from MCP server '{self.name}': {ex}"
            ) from ex
        if not isinstance(response, dict):
            raise McpProtocolError(f"JSON-RPC response from MCP server '{self.name}' is not an object")
        return response

    async def _terminate(self) -> None:
        process = self._process
        self._process = None
        self._tools = ()
        if process is None:
            return
        try:
            if process.returncode is None:
                process.kill()
            await asyncio.wait_for(process.wait(), timeout=_SHUTDOWN_TIMEOUT)
        except ProcessLookupError:
            pass
        except (asyncio.TimeoutError, OSError) as ex:
            logger.warning(f"MCP server '{self.name}' shutdown error: {ex!r}")
