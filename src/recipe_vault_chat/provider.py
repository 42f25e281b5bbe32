from typing import Protocol, runtime_checkable

from recipe_vault_chat.messages import LlmResponse, Message, ToolDefinition


@runtime_checkable
class LLMProvider(Protocol):
    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system_prompt: str | None = None,
    ) -> LlmResponse:
        """Run one chat completion and normalize the reply.

        Raises LlmTransportError, LlmApiError or LlmInvalidResponseError.
        Never retries.
        """
        ...


def create_provider(
    provider_name: str,
    api_key: str,
    model: str,
    *,
    timeout: float = 120.0,
    mock_recipe_id: str | None = None,
) -> LLMProvider:
    """Factory: create an LLMProvider by name."""
    name = provider_name.strip().lower()
    if name == "anthropic":
        from recipe_vault_chat.providers.anthropic_provider import AnthropicProvider
        return AnthropicProvider(api_key, model, timeout=timeout)
    if name == "openai":
        from recipe_vault_chat.providers.openai_provider import OpenAIProvider
        return OpenAIProvider(api_key, model, timeout=timeout)
    if name == "mock":
        from recipe_vault_chat.providers.mock_provider import MockProvider
        return MockProvider(mock_recipe_id)
    raise ValueError(f"Unknown provider: {provider_name!r}. Supported: 'anthropic', 'openai', 'mock'")
