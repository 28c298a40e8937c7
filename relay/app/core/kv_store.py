"""Durable key-value store used for rate-limit counters.

Provides a pluggable backend system with in-memory and Redis implementations.
Values are JSON documents; every write carries an expiration TTL.
"""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class _StoreEntry:
    """Internal store entry with TTL tracking."""

    value: str
    expires_at: float | None = None

    def is_expired(self) -> bool:
        """Check if the entry has expired."""
        if self.expires_at is None:
            return False
        return time.time() > self.expires_at


class KVStore(ABC):
    """Abstract base class for durable key-value stores.

    Both operations are fallible; callers treat them as best-effort.
    """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Retrieve and decode a JSON value.

        Args:
            key: The key to look up.

        Returns:
            The decoded value, or None if not found or expired.
        """

    @abstractmethod
    async def put(self, key: str, value: Any, expiration_ttl: int) -> None:
        """Encode and store a JSON value.

        Args:
            key: The key.
            value: A JSON-serializable value.
            expiration_ttl: Time-to-live in seconds.
        """

    async def close(self) -> None:
        """Release backend resources."""


class InMemoryKVStore(KVStore):
    """In-memory store with TTL support.

    This is the default backend. Data is not shared between processes and is
    lost when the application restarts.
    """

    def __init__(self) -> None:
        self._data: dict[str, _StoreEntry] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if entry.is_expired():
                del self._data[key]
                return None
            return json.loads(entry.value)

    async def put(self, key: str, value: Any, expiration_ttl: int) -> None:
        encoded = json.dumps(value)
        async with self._lock:
            expires_at = time.time() + expiration_ttl if expiration_ttl > 0 else None
            self._data[key] = _StoreEntry(value=encoded, expires_at=expires_at)


class RedisKVStore(KVStore):
    """Redis-backed store shared by every relay instance.

    Example:
        >>> store = RedisKVStore("redis://localhost:6379/0")
        >>> await store.put("rate:203.0.113.7", {"tokens": 59.0}, expiration_ttl=3600)
    """

    def __init__(self, redis_url: str) -> None:
        """Initialize the Redis store.

        Raises:
            ImportError: If the 'redis' package is not installed.
        """
        try:
            import redis.asyncio as aioredis
        except ImportError as e:
            raise ImportError(
                "Redis store requires 'redis' package. Install with: pip install redis"
            ) from e

        self._redis_url = redis_url
        self._redis: Any | None = None
        self._client_class = aioredis.from_url

    def _get_client(self) -> Any:
        if self._redis is None:
            self._redis = self._client_class(self._redis_url)
        return self._redis

    async def get(self, key: str) -> Any | None:
        raw = await self._get_client().get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def put(self, key: str, value: Any, expiration_ttl: int) -> None:
        await self._get_client().setex(key, expiration_ttl, json.dumps(value))

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


# Global store instance (singleton pattern)
_store_instance: KVStore | None = None


def get_kv_store(
    backend: str | None = None,
    redis_url: str | None = None,
    force_new: bool = False,
) -> KVStore:
    """Get or create the global store instance.

    Args:
        backend: 'memory', 'redis', or None to follow settings.redis_enabled.
        redis_url: Redis connection URL. If not provided, uses settings.redis_url.
        force_new: If True, create a new instance even if one exists.
    """
    global _store_instance

    if _store_instance is not None and not force_new:
        return _store_instance

    from relay.app.core.config import settings

    if backend == "redis":
        use_redis = True
    elif backend == "memory":
        use_redis = False
    else:
        use_redis = settings.redis_enabled

    if use_redis:
        _store_instance = RedisKVStore(redis_url or settings.redis_url)
        return _store_instance

    _store_instance = InMemoryKVStore()
    return _store_instance


def reset_kv_store() -> None:
    """Reset the global store instance (primarily for tests)."""
    global _store_instance
    _store_instance = None
