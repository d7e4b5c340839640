"""
Redis-backed conversation context.

Features:
- Shared windows for multi-instance deployments
- Native TTL, reset on every write
- Optimistic WATCH/MULTI/EXEC per key, retried on conflict
- Event loop aware (the UI and the extraction workers each run their own loops)

Each window is one JSON string under "{key_prefix}{conversation_id}".
"""

import asyncio
import json
import weakref

import redis.asyncio as redis_async
import structlog
from pydantic import TypeAdapter
from redis.exceptions import RedisError, WatchError
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random,
)

from bill_assistant.context.base import (
    ContextStoreError,
    ConversationContextStore,
    Mutation,
)
from bill_assistant.models.chat import ConversationRound

logger = structlog.get_logger(__name__)

_ROUNDS = TypeAdapter(list[ConversationRound])



class RedisContextStore(ConversationContextStore):

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        key_prefix: str = "chat:context:",
        max_stored_rounds: int = 10,
        ttl_seconds: int = 3600,
        max_connections: int = 10,
        socket_timeout: float = 5.0,
        max_cas_attempts: int = 10,
    ):
        super().__init__(max_stored_rounds, ttl_seconds)
        self._redis_url = redis_url
        self._key_prefix = key_prefix
        self._max_connections = max_connections
        self._socket_timeout = socket_timeout
        self._max_cas_attempts = max_cas_attempts
        # One client per event loop, since asyncio.run() creates new loops
        self._clients: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()

    async def _get_redis(self) -> redis_async.Redis:
        """Get or create the Redis client for the current event loop."""
        loop = asyncio.get_running_loop()
        client = self._clients.get(loop)
        if client is None:
            pool = redis_async.ConnectionPool.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=self._max_connections,
                socket_timeout=self._socket_timeout,
            )
            client = redis_async.Redis(connection_pool=pool)
            self._clients[loop] = client
            logger.debug("context_redis_connected", loop_id=id(loop))
        return client

    def _make_key(self, conversation_id: str) -> str:
        return f"{self._key_prefix}{conversation_id}"

    @staticmethod
    def _decode(raw) -> list[ConversationRound]:
        if not raw:
            return []
        return _ROUNDS.validate_python(json.loads(raw))

    @staticmethod
    def _encode(rounds: list[ConversationRound]) -> str:
        return _ROUNDS.dump_json(rounds).decode("utf-8")

    async def _load(self, conversation_id: str) -> list[ConversationRound]:
        try:
            client = await self._get_redis()
            raw = await client.get(self._make_key(conversation_id))
        except RedisError as e:
            raise ContextStoreError(f"Failed to read conversation window: {e}") from e
        return self._decode(raw)

    async def _update(self, conversation_id: str, mutation: Mutation) -> None:
        key = self._make_key(conversation_id)
        try:
            client = await self._get_redis()
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(WatchError),
                stop=stop_after_attempt(self._max_cas_attempts),
                wait=wait_random(0, 0.05),
                reraise=True,
            ):
                with attempt:
                    async with client.pipeline(transaction=True) as pipe:
                        await pipe.watch(key)
                        rounds = mutation(self._decode(await pipe.get(key)))
                        pipe.multi()
                        pipe.set(key, self._encode(rounds), ex=self.ttl_seconds)
                        await pipe.execute()
        except WatchError as e:
            raise ContextStoreError(
                f"Conversation window kept changing after {self._max_cas_attempts} attempts"
            ) from e
        except RedisError as e:
            raise ContextStoreError(f"Failed to write conversation window: {e}") from e

    async def _delete(self, conversation_id: str) -> None:
        try:
            client = await self._get_redis()
            await client.delete(self._make_key(conversation_id))
        except RedisError as e:
            raise ContextStoreError(f"Failed to clear conversation window: {e}") from e

    async def close(self) -> None:
        client = self._clients.pop(asyncio.get_running_loop(), None)
        if client is not None:
            await client.aclose()
