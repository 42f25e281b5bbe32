from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from loguru import logger

from recipe_vault_chat.messages import Message

DEFAULT_TTL_SECONDS = 12 * 60 * 60
DEFAULT_CAPACITY = 200


@dataclass
class Session:
    conversation_id: str
    messages: list[Message] = field(default_factory=list)
    last_access: float = 0.0


class SessionStore:
    """In-memory conversation histories with TTL and capacity eviction.

    A single lock guards the whole map. Maintenance runs on every write, so
    its cost is linear in the number of sessions; that is fine at the default
    capacity but is the first thing to revisit if the store has to grow.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._ttl_seconds = ttl_seconds
        self._capacity = capacity
        self._clock = clock
        # Dict order doubles as access order: touched sessions move to the end.
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()

    async def append_user_message(self, conversation_id: str, message: Message) -> tuple[list[Message], bool]:
        async with self._lock:
            now = self._clock()
            self._run_maintenance(now)

            session = self._sessions.pop(conversation_id, None)
            is_new = session is None
            if session is None:
                session = Session(conversation_id=conversation_id)
                logger.debug(f"Session created: {conversation_id}")
            session.messages.append(message)
            session.last_access = now
            self._sessions[conversation_id] = session

            if is_new:
                self._evict_over_capacity()
            return list(session.messages), is_new

    async def append_messages(self, conversation_id: str, messages: list[Message]) -> None:
        async with self._lock:
            now = self._clock()
            self._run_maintenance(now)

            session = self._sessions.pop(conversation_id, None)
            if session is None:
                logger.debug(f"Session {conversation_id} no longer exists; dropping {len(messages)} message(s)")
                return
            session.messages.extend(messages)
            session.last_access = now
            self._sessions[conversation_id] = session

    async def remove(self, conversation_id: str) -> None:
        async with self._lock:
            if self._sessions.pop(conversation_id, None) is not None:
                logger.debug(f"Session removed: {conversation_id}")

    async def get_history(self, conversation_id: str) -> list[Message] | None:
        async with self._lock:
            session = self._sessions.get(conversation_id)
            return list(session.messages) if session is not None else None

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._sessions

    def _run_maintenance(self, now: float) -> None:
        expired = [
            cid for cid, s in self._sessions.items()
            if now - s.last_access > self._ttl_seconds
        ]
        for cid in expired:
            del self._sessions[cid]
        if expired:
            logger.info(f"Expired {len(expired)} idle chat session(s)")
        self._evict_over_capacity()

    def _evict_over_capacity(self) -> None:
        excess = len(self._sessions) - self._capacity
        if excess <= 0:
            return
        # sorted() is stable, so equal timestamps keep access order.
        by_age = sorted(self._sessions.values(), key=lambda s: s.last_access)
        for session in by_age[:excess]:
            del self._sessions[session.conversation_id]
        logger.info(f"Evicted {excess} least-recently-used chat session(s) (capacity {self._capacity})")
