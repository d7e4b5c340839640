"""
Conversation Context Store

Keeps a rolling window of recent rounds per conversation so a text message
can be answered with some memory of what came before.

Rules every backend shares (implemented once, here):
- A user turn always opens a new round
- An assistant turn only closes the last round, and only if it is open
- At most max_stored_rounds rounds are kept, oldest evicted first
- Every write resets the idle timer; an idle window disappears entirely

Backends only provide read, delete and an atomic read-modify-write per key.
Different conversations never contend with each other.
"""

from abc import ABC, abstractmethod
from typing import Callable

import structlog

from bill_assistant.models.chat import ChatTurn, ConversationRound

logger = structlog.get_logger(__name__)

# Receives the current window (empty when absent) and returns the new one.
# Raising StateError aborts the update without writing.
Mutation = Callable[[list[ConversationRound]], list[ConversationRound]]


class ContextStoreError(Exception):
    """The backing store could not be read or written."""
    pass


class StateError(Exception):
    """An operation does not fit the current state of the window."""
    pass


class ConversationContextStore(ABC):

    def __init__(self, max_stored_rounds: int = 10, ttl_seconds: int = 3600):
        if max_stored_rounds < 1:
            raise ValueError("max_stored_rounds must be at least 1")
        self.max_stored_rounds = max_stored_rounds
        self.ttl_seconds = ttl_seconds

    # ------------------------------------------------------------ backend API

    @abstractmethod
    async def _load(self, conversation_id: str) -> list[ConversationRound]:
        """Current window, empty if absent or expired."""
        pass

    @abstractmethod
    async def _update(self, conversation_id: str, mutation: Mutation) -> None:
        """Apply a mutation atomically and reset the TTL."""
        pass

    @abstractmethod
    async def _delete(self, conversation_id: str) -> None:
        pass

    # ---------------------------------------------------------------- public

    async def append_user(self, conversation_id: str, text: str) -> None:
        """Open a new round with the user's text."""
        def mutation(rounds: list[ConversationRound]) -> list[ConversationRound]:
            rounds = rounds + [ConversationRound(user_text=text)]
            return rounds[-self.max_stored_rounds:]

        await self._update(conversation_id, mutation)

    async def append_assistant(self, conversation_id: str, text: str) -> bool:
        """
        Close the last round with the assistant's reply.

        Returns False, without writing, when there is no window or the last
        round already has a reply.
        """
        def mutation(rounds: list[ConversationRound]) -> list[ConversationRound]:
            if not rounds:
                raise StateError("no conversation window")
            if not rounds[-1].is_open:
                raise StateError("last round already has a reply")
            closed = rounds[-1].model_copy(update={"assistant_text": text})
            return rounds[:-1] + [closed]

        try:
            await self._update(conversation_id, mutation)
        except StateError as e:
            logger.warning(
                "assistant_turn_dropped",
                conversation_id=conversation_id,
                reason=str(e),
            )
            return False
        return True

    async def recent_turns(self, conversation_id: str, max_rounds: int) -> list[ChatTurn]:
        """Flatten the last max_rounds rounds, user turn first in each."""
        if max_rounds <= 0:
            return []
        rounds = await self._load(conversation_id)
        turns: list[ChatTurn] = []
        for conversation_round in rounds[-max_rounds:]:
            turns.extend(conversation_round.to_turns())
        return turns

    async def round_count(self, conversation_id: str) -> int:
        return len(await self._load(conversation_id))

    async def clear(self, conversation_id: str) -> None:
        await self._delete(conversation_id)

    async def close(self) -> None:
        """Release backend resources."""
        return None
