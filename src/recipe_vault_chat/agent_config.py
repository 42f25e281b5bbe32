from dataclasses import dataclass, field
from typing import Any

DEFAULT_MAX_TOOL_ROUNDS = 10


@dataclass
class AgentConfig:
    provider: Any = None
    mcp_server_configs: dict[str, dict[str, Any]] = field(default_factory=dict)
    system_prompt: str = ""
    max_tool_rounds: int = DEFAULT_MAX_TOOL_ROUNDS
    mcp_read_timeout: float = 60.0
    inject_tool_reminder: bool = True
