from loguru import logger

from recipe_vault_chat.messages import (
    LlmResponse,
    Message,
    TextResponse,
    ToolCall,
    ToolDefinition,
    ToolMessage,
    ToolUseResponse,
    UserMessage,
)

_DEFAULT_RECIPE_ID = "9ebef851-3333-47ec-9238-2757ecafcf4e"


def _last_user_text(messages: list[Message]) -> str:
    for message in reversed(messages):
        if isinstance(message, UserMessage):
            return message.text
    return ""


class MockProvider:
    """Deterministic offline provider for end-to-end runs without an API key."""

    def __init__(self, recipe_id: str | None = None):
        self._recipe_id = recipe_id or _DEFAULT_RECIPE_ID

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        system_prompt: str | None = None,
    ) -> LlmResponse:
        lower = _last_user_text(messages).lower()
        logger.debug(f"Mock completion: messages={len(messages)}, tools={len(tools)}")

        # Tool results are in: finish the turn.
        if messages and isinstance(messages[-1], ToolMessage):
            if "list" in lower:
                return TextResponse(
                    "Here are all your saved recipes:\n\n## 1. **Chicken Curry**\n"
                    "A flavorful, aromatic curry with coconut milk\n\n"
                    "Prep: 15 min | Cook: 30 min | Total: 45 min | Servings: 4"
                )
            if "show" in lower or "display" in lower:
                return TextResponse(
                    "I've pulled up the recipe in the side panel for you! "
                    "It's a flavorful dish that comes together in about 45 minutes."
                )
            return TextResponse("Done! I've completed the requested action.")

        if "list" in lower:
            return ToolUseResponse([ToolCall(id="toolu_mock_list", name="list_recipes", arguments={})])
        if "show" in lower or "display" in lower:
            return ToolUseResponse([
                ToolCall(
                    id="toolu_mock_display",
                    name="display_recipe",
                    arguments={"recipe_id": self._recipe_id},
                )
            ])
        return TextResponse("I'm a mock assistant. Try asking me to 'list recipes' or 'show a recipe'.")
