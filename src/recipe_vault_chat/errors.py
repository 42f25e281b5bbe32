class AgentError(Exception):
    """Base class for every error raised by the chat agent."""


class LlmError(AgentError):
    pass


class LlmTransportError(LlmError):
    """The request never produced an HTTP response (connection failure or timeout)."""


class LlmApiError(LlmError):
    def __init__(self, status_code: int | None, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"API error ({status_code}): {body}")


class LlmInvalidResponseError(LlmError):
    pass


class McpError(AgentError):
    pass


class McpProcessNotRunningError(McpError):
    def __init__(self, server_name: str):
        self.server_name = server_name
        super().__init__(f"MCP process '{server_name}' is not running")


class McpProcessExitedError(McpError):
    """Pipe failure: the subprocess went away underneath us."""


class McpNotRespondingError(McpError):
    """The subprocess is alive but produced no response line in time."""


class McpProtocolError(McpError):
    pass


class McpRpcError(McpError):
    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"MCP error {code}: {message}")


class McpToolError(McpError):
    """tools/call succeeded at the protocol level but the result is flagged isError."""


class UnknownToolError(AgentError):
    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Unknown tool: {tool_name}")


class ToolRoundLimitError(AgentError):
    def __init__(self, max_rounds: int):
        self.max_rounds = max_rounds
        super().__init__(f"Too many tool calls: gave up after {max_rounds} tool rounds")


class ChatError(AgentError):
    pass
