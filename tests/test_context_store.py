"""Tests for the rolling conversation window."""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from bill_assistant.context import ContextStoreError, MemoryContextStore, RedisContextStore
from bill_assistant.models.chat import ConversationRound, TurnRole


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return MemoryContextStore(max_stored_rounds=10, ttl_seconds=3600, clock=clock)


class TestRounds:

    @pytest.mark.asyncio
    async def test_user_then_assistant(self, store):
        """Test a completed round replays user first, then assistant."""
        await store.append_user("c1", "昨天晚饭花了50")
        assert await store.append_assistant("c1", "记下啦")

        turns = await store.recent_turns("c1", 5)
        assert [(t.role, t.text) for t in turns] == [
            (TurnRole.USER, "昨天晚饭花了50"),
            (TurnRole.ASSISTANT, "记下啦"),
        ]

    @pytest.mark.asyncio
    async def test_open_round_contributes_user_turn_only(self, store):
        """Test a round whose reply never arrived still counts."""
        await store.append_user("c1", "第一句")
        await store.append_user("c1", "第二句")
        assert await store.append_assistant("c1", "回复第二句")

        turns = await store.recent_turns("c1", 5)
        assert [t.text for t in turns] == ["第一句", "第二句", "回复第二句"]
        assert await store.round_count("c1") == 2

    @pytest.mark.asyncio
    async def test_assistant_without_window_is_noop(self, store):
        """Test an out-of-order reply is dropped, not stored."""
        assert not await store.append_assistant("missing", "孤儿回复")
        assert await store.recent_turns("missing", 5) == []

    @pytest.mark.asyncio
    async def test_assistant_on_closed_round_is_noop(self, store):
        await store.append_user("c1", "你好")
        assert await store.append_assistant("c1", "咩～")
        assert not await store.append_assistant("c1", "又一条")

        turns = await store.recent_turns("c1", 5)
        assert [t.text for t in turns] == ["你好", "咩～"]


class TestWindowBounds:

    @pytest.mark.asyncio
    async def test_oldest_rounds_evicted(self, store):
        """Test at most max_stored_rounds are kept, oldest first out."""
        for i in range(12):
            await store.append_user("c1", f"消息{i}")
            await store.append_assistant("c1", f"回复{i}")

        assert await store.round_count("c1") == 10
        turns = await store.recent_turns("c1", 10)
        assert turns[0].text == "消息2"
        assert turns[-1].text == "回复11"

    @pytest.mark.asyncio
    async def test_replay_limited_to_recent_rounds(self, store):
        for i in range(8):
            await store.append_user("c1", f"消息{i}")
            await store.append_assistant("c1", f"回复{i}")

        turns = await store.recent_turns("c1", 5)
        assert len(turns) == 10
        assert turns[0].text == "消息3"

    @pytest.mark.asyncio
    async def test_recent_turns_does_not_mutate(self, store):
        await store.append_user("c1", "你好")
        await store.recent_turns("c1", 5)
        await store.recent_turns("c1", 0)
        assert await store.round_count("c1") == 1

    @pytest.mark.asyncio
    async def test_clear(self, store):
        await store.append_user("c1", "你好")
        await store.clear("c1")
        assert await store.round_count("c1") == 0

    @pytest.mark.asyncio
    async def test_conversations_are_independent(self, store):
        await store.append_user("c1", "甲")
        await store.append_user("c2", "乙")
        assert [t.text for t in await store.recent_turns("c1", 5)] == ["甲"]
        assert [t.text for t in await store.recent_turns("c2", 5)] == ["乙"]

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            MemoryContextStore(max_stored_rounds=0)


class TestExpiry:

    @pytest.mark.asyncio
    async def test_idle_window_vanishes(self, store, clock):
        """Test the whole window is gone once the TTL elapses."""
        await store.append_user("c1", "你好")
        clock.advance(3600)
        assert await store.recent_turns("c1", 5) == []
        assert not await store.append_assistant("c1", "迟到的回复")

    @pytest.mark.asyncio
    async def test_every_write_resets_ttl(self, store, clock):
        await store.append_user("c1", "你好")
        clock.advance(3000)
        await store.append_assistant("c1", "咩～")
        clock.advance(3000)
        assert await store.round_count("c1") == 1

    @pytest.mark.asyncio
    async def test_reads_do_not_extend_ttl(self, store, clock):
        await store.append_user("c1", "你好")
        clock.advance(3000)
        await store.recent_turns("c1", 5)
        clock.advance(600)
        assert await store.round_count("c1") == 0

    @pytest.mark.asyncio
    async def test_expired_windows_are_released(self, store, clock):
        """Test idle conversations do not pile up in memory."""
        for i in range(1000):
            await store.append_user(f"c{i}", "你好")
        for i in range(500):
            await store.clear(f"c{i}")
        assert store.window_count == 500
        assert len(store._locks) == 0

        clock.advance(3601)
        await store.append_user("fresh", "新的对话")

        assert store.window_count == 1
        assert await store.round_count("c999") == 0


class TestConcurrency:

    def test_concurrent_writers_lose_nothing(self):
        """Test writers on separate threads and loops all land."""
        store = MemoryContextStore(max_stored_rounds=100, ttl_seconds=3600)

        def write(i: int) -> None:
            asyncio.run(store.append_user("shared", f"消息{i}"))

        with ThreadPoolExecutor(max_workers=8) as executor:
            list(executor.map(write, range(50)))

        assert asyncio.run(store.round_count("shared")) == 50


class TestRedisContextStore:

    def test_window_encoding(self):
        rounds = [
            ConversationRound(user_text="你好", assistant_text="咩～"),
            ConversationRound(user_text="还在吗"),
        ]
        raw = RedisContextStore._encode(rounds)
        assert RedisContextStore._decode(raw) == rounds
        assert RedisContextStore._decode(None) == []

    def test_key_prefix(self):
        store = RedisContextStore(key_prefix="chat:context:")
        assert store._make_key("user-1") == "chat:context:user-1"

    @pytest.mark.asyncio
    async def test_unreachable_server_raises_store_error(self):
        """Test connection failures surface as ContextStoreError."""
        store = RedisContextStore(redis_url="redis://127.0.0.1:1/0", socket_timeout=0.5)
        try:
            with pytest.raises(ContextStoreError):
                await store.append_user("c1", "你好")
        finally:
            await store.close()
