"""
Conversation context package.

The backend is picked by CHAT_CONTEXT_BACKEND (memory or redis).
"""

from typing import Optional

from bill_assistant.config import ChatContextSettings, RedisSettings, get_settings
from bill_assistant.context.base import (
    ContextStoreError,
    ConversationContextStore,
    StateError,
)
from bill_assistant.context.memory import MemoryContextStore
from bill_assistant.context.redis_store import RedisContextStore


def create_context_store(
    chat_settings: Optional[ChatContextSettings] = None,
    redis_settings: Optional[RedisSettings] = None,
) -> ConversationContextStore:
    """Build the configured context store."""
    settings = get_settings()
    chat_settings = chat_settings or settings.chat_context

    if chat_settings.backend == "redis":
        redis_settings = redis_settings or settings.redis
        return RedisContextStore(
            redis_url=redis_settings.url,
            key_prefix=redis_settings.key_prefix,
            max_stored_rounds=chat_settings.max_stored_rounds,
            ttl_seconds=chat_settings.ttl_seconds,
            max_connections=redis_settings.max_connections,
            socket_timeout=redis_settings.socket_timeout,
        )

    return MemoryContextStore(
        max_stored_rounds=chat_settings.max_stored_rounds,
        ttl_seconds=chat_settings.ttl_seconds,
    )


__all__ = [
    "ContextStoreError",
    "ConversationContextStore",
    "MemoryContextStore",
    "RedisContextStore",
    "StateError",
    "create_context_store",
]
