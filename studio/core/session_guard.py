"""One active agent loop per conversation.

Tracks which conversations have a turn in flight. Use ``acquire`` as an
async context manager around a turn; a second turn for the same
conversation raises ``ConversationBusy`` instead of queueing.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

logger = logging.getLogger(__name__)


class ConversationBusy(Exception):
    """Raised when a conversation already has a turn in flight."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        super().__init__(f"Conversation {conversation_id} already has a turn in progress")


class SessionGuard:
    """In-memory registry of conversations with an active turn."""

    def __init__(self) -> None:
        self._active: set[str] = set()
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def acquire(self, conversation_id: str | None) -> AsyncIterator[None]:
        if not conversation_id:
            yield
            return

        async with self._lock:
            if conversation_id in self._active:
                raise ConversationBusy(conversation_id)
            self._active.add(conversation_id)

        try:
            yield
        finally:
            async with self._lock:
                self._active.discard(conversation_id)

    def is_active(self, conversation_id: str) -> bool:
        return conversation_id in self._active

    def snapshot(self) -> list[str]:
        """Conversations currently mid-turn (for health/debug endpoints)."""
        return sorted(self._active)


_guard: SessionGuard | None = None


def get_session_guard() -> SessionGuard:
    global _guard
    if _guard is None:
        _guard = SessionGuard()
    return _guard


def reset_session_guard() -> None:
    """Drop the singleton (for testing)."""
    global _guard
    _guard = None
