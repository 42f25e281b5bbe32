from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from recipe_vault_chat.agent import Agent
from recipe_vault_chat.agent_config import AgentConfig
from recipe_vault_chat.app_config import (
    AppConfig,
    RuntimeEnv,
    effective_provider_name,
    resolve_mcp_servers,
)
from recipe_vault_chat.chat_service import ChatService
from recipe_vault_chat.logging_config import setup_logging
from recipe_vault_chat.provider import LLMProvider, create_provider
from recipe_vault_chat.providers.common import RetryingProvider
from recipe_vault_chat.sessions import SessionStore
from recipe_vault_chat.system_prompt import build_system_prompt


@dataclass
class AppRuntime:
    chat_service: ChatService
    provider_name: str
    mcp_server_configs: dict
    log_descriptions: list[str]


def build_provider(app: AppConfig, env: RuntimeEnv) -> LLMProvider:
    provider_name = effective_provider_name(app, env)
    provider = create_provider(
        provider_name,
        env.provider_api_key,
        app.model,
        timeout=app.llm_timeout_seconds,
        mock_recipe_id=env.mock_recipe_id,
    )
    if app.llm_max_attempts > 1 and provider_name != "mock":
        logger.info(f"LLM transport retries enabled: up to {app.llm_max_attempts} attempts")
        provider = RetryingProvider(provider, app.llm_max_attempts)
    return provider


def bootstrap_runtime(app: AppConfig, env: RuntimeEnv) -> AppRuntime:
    log_descriptions = setup_logging(app)

    provider_name = effective_provider_name(app, env)
    if provider_name != "mock" and not env.provider_api_key:
        raise ValueError(f"{env.provider_env_var} environment variable is required.")

    mcp_server_configs = resolve_mcp_servers(app, env)
    system_prompt = build_system_prompt(fetch_enabled="fetch" in mcp_server_configs)

    def agent_factory() -> Agent:
        return Agent(
            AgentConfig(
                provider=build_provider(app, env),
                mcp_server_configs=mcp_server_configs,
                system_prompt=system_prompt,
                max_tool_rounds=app.max_tool_rounds,
                mcp_read_timeout=app.mcp_read_timeout_seconds,
            )
        )

    store = SessionStore(
        ttl_seconds=app.session_ttl_hours * 60 * 60,
        capacity=app.session_capacity,
    )

    return AppRuntime(
        chat_service=ChatService(agent_factory, store),
        provider_name=provider_name,
        mcp_server_configs=mcp_server_configs,
        log_descriptions=log_descriptions,
    )
