from __future__ import annotations

import json
import os
import shutil
import sys
from dataclasses import dataclass
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_DEFAULT_RECIPE_SERVER = _PROJECT_ROOT / "mcp_servers" / "recipe_tools_server.py"
_DEFAULT_API_BASE_URL = "http://127.0.0.1:3000"


@dataclass
class RuntimeEnv:
    provider_api_key: str
    provider_env_var: str
    mock_llm: bool
    mock_recipe_id: str | None
    mcp_binary_path: str | None
    api_base_url: str
    api_key: str
    user_email: str | None


@dataclass
class AppConfig:
    provider_name: str
    model: str
    max_tool_rounds: int
    llm_timeout_seconds: float
    llm_max_attempts: int
    mcp_read_timeout_seconds: float
    session_ttl_hours: float
    session_capacity: int
    mcp_server_configs: dict
    log_level: str
    log_consumers: list | None
    log_file: str
    log_rotation: str
    log_retention: int


def load_json_config() -> dict:
    config_path = Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def _to_bool(value: object, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"1", "true", "yes", "on"}:
            return True
        if lowered in {"0", "false", "no", "off"}:
            return False
    return bool(value)


def parse_app_config(config: dict) -> AppConfig:
    return AppConfig(
        provider_name=config.get("Provider", "anthropic").strip().lower(),
        model=config.get("Model", "claude-sonnet-4-5"),
        max_tool_rounds=int(config.get("MaxToolRounds", 10)),
        llm_timeout_seconds=float(config.get("LlmTimeoutSeconds", 120)),
        llm_max_attempts=int(config.get("LlmMaxAttempts", 1)),
        mcp_read_timeout_seconds=float(config.get("McpReadTimeoutSeconds", 60)),
        session_ttl_hours=float(config.get("SessionTtlHours", 12)),
        session_capacity=int(config.get("SessionCapacity", 200)),
        mcp_server_configs=config.get("McpServers", {}),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
        log_file=config.get("LogFile", "recipe-vault-chat.log"),
        log_rotation=config.get("LogRotation", "10 MB"),
        log_retention=int(config.get("LogRetention", 3)),
    )


def resolve_runtime_env(provider_name: str) -> RuntimeEnv:
    if provider_name == "openai":
        provider_api_key = os.environ.get("OPENAI_API_KEY", "")
        provider_env_var = "OPENAI_API_KEY"
    else:
        provider_api_key = os.environ.get("ANTHROPIC_API_KEY", "")
        provider_env_var = "ANTHROPIC_API_KEY"

    return RuntimeEnv(
        provider_api_key=provider_api_key,
        provider_env_var=provider_env_var,
        mock_llm=_to_bool(os.environ.get("MOCK_LLM"), default=False),
        mock_recipe_id=os.environ.get("MOCK_RECIPE_ID") or None,
        mcp_binary_path=os.environ.get("MCP_BINARY_PATH") or None,
        api_base_url=os.environ.get("API_BASE_URL", _DEFAULT_API_BASE_URL),
        api_key=os.environ.get("API_KEY", ""),
        user_email=os.environ.get("USER_EMAIL") or None,
    )


def effective_provider_name(app: AppConfig, env: RuntimeEnv) -> str:
    return "mock" if env.mock_llm else app.provider_name


def default_mcp_servers(env: RuntimeEnv) -> dict[str, dict]:
    """The recipes server, plus the fetch server when ``uvx`` is installed."""
    if env.mcp_binary_path:
        recipes = {"command": env.mcp_binary_path, "args": []}
    else:
        recipes = {"command": sys.executable, "args": [str(_DEFAULT_RECIPE_SERVER)]}

    recipe_env = {"API_BASE_URL": env.api_base_url, "API_KEY": env.api_key}
    if env.user_email:
        recipe_env["USER_EMAIL"] = env.user_email
    recipes["env"] = recipe_env

    servers = {"recipes": recipes}
    if shutil.which("uvx") is not None:
        servers["fetch"] = {"command": "uvx", "args": ["mcp-server-fetch"], "env": {}}
    return servers


def resolve_mcp_servers(app: AppConfig, env: RuntimeEnv) -> dict[str, dict]:
    return app.mcp_server_configs or default_mcp_servers(env)
