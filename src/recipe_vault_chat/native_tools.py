"""Tools the agent answers itself instead of forwarding to a tool server.

Both exist to drive the web UI: ``display_recipe`` opens a recipe in the side
panel and ``start_timer`` starts a kitchen timer. Their effects are collected
in a :class:`TurnOutputs` and handed back to the caller with the final text.
"""
from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from recipe_vault_chat.errors import AgentError
from recipe_vault_chat.messages import ToolDefinition, get_number, get_str

DISPLAYED_MESSAGE = (
    "Recipe displayed in side panel. STOP. Do not read the recipe out loud. "
    "Do not call get_recipe. Just provide a brief summary."
)
NOT_FOUND_MESSAGE = (
    "Error: Could not find the recipe. Please use list_recipes first to get the correct recipe_id."
)

CallTool = Callable[[str, dict[str, Any]], Awaitable[str]]


@dataclass
class TurnOutputs:
    recipe_ids: list[str] = field(default_factory=list)
    timers: list[tuple[float, str]] = field(default_factory=list)


def _recipe_entries(listing: Any) -> list[dict]:
    if isinstance(listing, dict):
        listing = listing.get("recipes")
    if not isinstance(listing, list):
        return []
    return [r for r in listing if isinstance(r, dict)]


class DisplayRecipeTool:
    name = "display_recipe"

    def __init__(self, call_tool: CallTool):
        self._call_tool = call_tool

    @property
    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=(
                "Renders the visual recipe card in the side panel. MANDATORY when the user asks to see, "
                "view, read, or cook a recipe. Provide EITHER recipe_id (from list_recipes) OR title "
                "(for searching). If you have the exact recipe_id from a previous list_recipes call, "
                "use that. If you only know the recipe name, provide the title instead."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "recipe_id": {
                        "type": "string",
                        "description": "The exact UUID from list_recipes. Use this if you have it.",
                    },
                    "title": {
                        "type": "string",
                        "description": "The recipe title to search for. Use this if you don't have the exact recipe_id.",
                    },
                },
            },
        )

    async def execute(self, arguments: dict[str, Any], outputs: TurnOutputs) -> str:
        recipe_id = get_str(arguments, "recipe_id")
        title = get_str(arguments, "title")

        resolved = recipe_id
        if title:
            logger.info(f"Searching for recipe by title: {title}")
            found = await self.find_recipe_by_title(title)
            if found is not None:
                resolved = found
            else:
                logger.warning(f"No recipe found matching title: {title}")

        if not resolved:
            logger.warning(f"Failed to resolve recipe_id from args: {arguments}")
            return NOT_FOUND_MESSAGE

        outputs.recipe_ids.append(resolved)
        return DISPLAYED_MESSAGE

    async def find_recipe_by_title(self, search_title: str) -> str | None:
        try:
            text = await self._call_tool("list_recipes", {})
            listing = json.loads(text)
        except (AgentError, json.JSONDecodeError) as ex:
            logger.warning(f"list_recipes lookup failed: {ex}")
            return None

        needle = search_title.lower()
        for recipe in _recipe_entries(listing):
            title = recipe.get("title")
            if not isinstance(title, str):
                continue
            haystack = title.lower()
            if needle in haystack or haystack in needle:
                found = recipe.get("recipe_id") or recipe.get("id")
                return str(found) if found else None
        return None


class StartTimerTool:
    name = "start_timer"

    @property
    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=(
                "Start a kitchen timer in the user's browser, e.g. for marinating, resting, simmering "
                "or baking. Use a short, descriptive label."
            ),
            input_schema={
                "type": "object",
                "properties": {
                    "duration_minutes": {
                        "type": "number",
                        "description": "Timer length in minutes",
                    },
                    "label": {
                        "type": "string",
                        "description": "Short label shown next to the timer, e.g. 'Marinate chicken'",
                    },
                },
                "required": ["duration_minutes", "label"],
            },
        )

    async def execute(self, arguments: dict[str, Any], outputs: TurnOutputs) -> str:
        duration = get_number(arguments, "duration_minutes")
        if duration is None or duration <= 0:
            raise ValueError("duration_minutes must be a positive number")
        label = (get_str(arguments, "label") or "").strip()
        if not label:
            raise ValueError("label must be a non-empty string")
        outputs.timers.append((duration, label))
        logger.info(f"Timer requested: {duration:g} min '{label}'")
        return f"Timer started: {label} ({duration:g} minutes)"


def build_native_tools(call_tool: CallTool) -> dict[str, Any]:
    tools = [DisplayRecipeTool(call_tool), StartTimerTool()]
    return {t.name: t for t in tools}
