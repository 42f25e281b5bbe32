from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from loguru import logger

from recipe_vault_chat.agent import Agent
from recipe_vault_chat.errors import AgentError, ChatError
from recipe_vault_chat.messages import ContentBlock, ImageBlock, TextBlock, UserMessage
from recipe_vault_chat.sessions import SessionStore


@dataclass(frozen=True)
class CurrentRecipe:
    """The recipe open in the user's side panel when the message was sent."""

    recipe_id: str
    title: str | None = None


@dataclass
class ChatReply:
    conversation_id: str
    text: str
    tools_used: list[str] = field(default_factory=list)
    recipe_ids: list[str] = field(default_factory=list)
    timers: list[tuple[float, str]] = field(default_factory=list)
    is_new: bool = False


def build_user_message(
    text: str,
    images: Sequence[ImageBlock] = (),
    current_recipe: CurrentRecipe | None = None,
) -> UserMessage:
    content: list[ContentBlock] = [TextBlock(text)]
    if current_recipe is not None:
        title = f"{current_recipe.title} " if current_recipe.title else ""
        content.append(TextBlock(f"[current_recipe: {title}(recipe_id: {current_recipe.recipe_id})]"))
    content.extend(images)
    return UserMessage(content=content)


class ChatService:
    """Runs chat turns for many conversations against one lazily created agent."""

    def __init__(self, agent_factory: Callable[[], Agent], store: SessionStore | None = None):
        self._agent_factory = agent_factory
        self._agent: Agent | None = None
        self._agent_lock = asyncio.Lock()
        self._store = store if store is not None else SessionStore()
        self._turn_locks: dict[str, asyncio.Lock] = {}
        self._turn_lock_users: dict[str, int] = {}

    @property
    def store(self) -> SessionStore:
        return self._store

    async def get_agent(self) -> Agent:
        async with self._agent_lock:
            if self._agent is None:
                agent = self._agent_factory()
                try:
                    await agent.start()
                except AgentError as ex:
                    await agent.stop()
                    raise ChatError(f"Failed to start agent: {ex}") from ex
                self._agent = agent
            return self._agent

    async def send_message(
        self,
        conversation_id: str | None,
        text: str,
        images: Sequence[ImageBlock] = (),
        current_recipe: CurrentRecipe | None = None,
    ) -> ChatReply:
        conversation_id = conversation_id or str(uuid.uuid4())
        agent = await self.get_agent()

        async with self._conversation_turn(conversation_id):
            message = build_user_message(text, images, current_recipe)
            history, is_new = await self._store.append_user_message(conversation_id, message)
            logger.info(
                f"Chat turn: conversation={conversation_id}, history={len(history)}, new={is_new}"
            )
            try:
                result = await agent.chat(history)
            except AgentError as ex:
                logger.error(f"Chat turn failed for conversation {conversation_id}: {ex}")
                raise ChatError(str(ex)) from ex
            await self._store.append_messages(conversation_id, result.new_messages)

        return ChatReply(
            conversation_id=conversation_id,
            text=result.text,
            tools_used=result.tools_used,
            recipe_ids=result.recipe_ids,
            timers=result.timers,
            is_new=is_new,
        )

    async def reset(self, conversation_id: str) -> None:
        await self._store.remove(conversation_id)
        logger.info(f"Conversation reset: {conversation_id}")

    async def shutdown(self) -> None:
        async with self._agent_lock:
            if self._agent is not None:
                await self._agent.stop()
                self._agent = None

    @asynccontextmanager
    async def _conversation_turn(self, conversation_id: str) -> AsyncIterator[None]:
        lock = self._turn_locks.setdefault(conversation_id, asyncio.Lock())
        self._turn_lock_users[conversation_id] = self._turn_lock_users.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._turn_lock_users[conversation_id] - 1
            if remaining:
                self._turn_lock_users[conversation_id] = remaining
            else:
                del self._turn_lock_users[conversation_id]
                del self._turn_locks[conversation_id]
