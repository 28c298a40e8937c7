"""Tests for the durable key-value store backends."""

import time
from unittest.mock import AsyncMock, patch

import pytest

from relay.app.core.kv_store import (
    InMemoryKVStore,
    RedisKVStore,
    get_kv_store,
    reset_kv_store,
)


class TestInMemoryKVStore:
    """Test in-memory store implementation."""

    @pytest.mark.asyncio
    async def test_put_and_get(self, store):
        await store.put("rate:203.0.113.7", {"tokens": 59.0, "last_refill": 1}, expiration_ttl=3600)

        assert await store.get("rate:203.0.113.7") == {"tokens": 59.0, "last_refill": 1}

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        assert await store.get("rate:nobody") is None

    @pytest.mark.asyncio
    async def test_values_are_copies(self, store):
        value = {"tokens": 10.0}
        await store.put("k", value, expiration_ttl=60)
        value["tokens"] = 0.0

        assert await store.get("k") == {"tokens": 10.0}

    @pytest.mark.asyncio
    async def test_expired_entry_is_dropped(self, store):
        await store.put("k", {"tokens": 1.0}, expiration_ttl=60)

        with patch("relay.app.core.kv_store.time.time", return_value=time.time() + 61):
            assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_put_rejects_unserializable_values(self, store):
        with pytest.raises(TypeError):
            await store.put("k", object(), expiration_ttl=60)


class TestRedisKVStore:
    """Test the Redis backend against a mocked client."""

    @pytest.fixture
    def redis_client(self):
        client = AsyncMock()
        client.get.return_value = b'{"tokens": 42.0, "last_refill": 7}'
        return client

    @pytest.fixture
    def redis_store(self, redis_client):
        store = RedisKVStore("redis://localhost:6379/0")
        store._redis = redis_client
        return store

    @pytest.mark.asyncio
    async def test_get_decodes_json(self, redis_store, redis_client):
        assert await redis_store.get("rate:a") == {"tokens": 42.0, "last_refill": 7}
        redis_client.get.assert_awaited_once_with("rate:a")

    @pytest.mark.asyncio
    async def test_get_missing(self, redis_store, redis_client):
        redis_client.get.return_value = None

        assert await redis_store.get("rate:a") is None

    @pytest.mark.asyncio
    async def test_put_uses_setex(self, redis_store, redis_client):
        await redis_store.put("rate:a", {"tokens": 1.0}, expiration_ttl=3600)

        redis_client.setex.assert_awaited_once_with("rate:a", 3600, '{"tokens": 1.0}')

    @pytest.mark.asyncio
    async def test_close_releases_client(self, redis_store, redis_client):
        await redis_store.close()

        redis_client.aclose.assert_awaited_once()
        assert redis_store._redis is None


class TestGetKVStore:
    """Test the global store accessor."""

    def test_singleton(self):
        assert get_kv_store() is get_kv_store()

    def test_memory_backend(self):
        assert isinstance(get_kv_store(backend="memory"), InMemoryKVStore)

    def test_redis_backend(self):
        store = get_kv_store(backend="redis", redis_url="redis://cache:6379/1")

        assert isinstance(store, RedisKVStore)
        assert store._redis_url == "redis://cache:6379/1"

    def test_force_new(self):
        first = get_kv_store(backend="memory")

        assert get_kv_store(backend="memory", force_new=True) is not first

    def test_reset(self):
        first = get_kv_store(backend="memory")
        reset_kv_store()

        assert get_kv_store(backend="memory") is not first
