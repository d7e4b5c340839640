"""
In-memory conversation context backend.

Good for single-instance deployments. Data is lost on restart.

A plain threading lock per conversation guards each read-modify-write.
Mutations are synchronous, so no lock is ever held across an await, and
callers on different event loops (the UI runs a fresh loop per request)
still serialize correctly.

Locks are held weakly, so they go away with their last user. Expired
windows are swept on writes, at most once per TTL period.
"""

import threading
import time
import weakref
from dataclasses import dataclass
from typing import Callable

from bill_assistant.context.base import ConversationContextStore, Mutation
from bill_assistant.models.chat import ConversationRound


@dataclass
class _Window:
    rounds: list[ConversationRound]
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class MemoryContextStore(ConversationContextStore):

    def __init__(
        self,
        max_stored_rounds: int = 10,
        ttl_seconds: int = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(max_stored_rounds, ttl_seconds)
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        # An entry lives only while some caller holds the lock
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._locks_guard = threading.Lock()
        self._next_sweep = clock() + ttl_seconds

    def _lock_for(self, conversation_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(conversation_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[conversation_id] = lock
            return lock

    def _live_rounds(self, conversation_id: str) -> list[ConversationRound]:
        window = self._windows.get(conversation_id)
        if window is None:
            return []
        if window.is_expired(self._clock()):
            del self._windows[conversation_id]
            return []
        return list(window.rounds)

    def _sweep_expired(self) -> None:
        """
        Drop windows nobody has touched within the TTL.

        Runs at most once per TTL period. A window whose lock is busy is
        being written right now, so it is skipped.
        """
        now = self._clock()
        with self._locks_guard:
            if now < self._next_sweep:
                return
            self._next_sweep = now + self.ttl_seconds
            expired = [
                conversation_id
                for conversation_id, window in list(self._windows.items())
                if window.is_expired(now)
            ]

        for conversation_id in expired:
            lock = self._lock_for(conversation_id)
            if not lock.acquire(blocking=False):
                continue
            try:
                window = self._windows.get(conversation_id)
                if window is not None and window.is_expired(now):
                    del self._windows[conversation_id]
            finally:
                lock.release()

    @property
    def window_count(self) -> int:
        """Windows currently held in memory, expired ones not yet swept included."""
        return len(self._windows)

    async def _load(self, conversation_id: str) -> list[ConversationRound]:
        with self._lock_for(conversation_id):
            return self._live_rounds(conversation_id)

    async def _update(self, conversation_id: str, mutation: Mutation) -> None:
        with self._lock_for(conversation_id):
            rounds = mutation(self._live_rounds(conversation_id))
            self._windows[conversation_id] = _Window(
                rounds=rounds,
                expires_at=self._clock() + self.ttl_seconds,
            )
        self._sweep_expired()

    async def _delete(self, conversation_id: str) -> None:
        with self._lock_for(conversation_id):
            self._windows.pop(conversation_id, None)
