"""Two-tier token bucket rate limiter.

Admission decisions are taken against the process-local cache. The durable
store is only touched from detached tasks: a cache miss schedules a refresh,
every decision schedules a write. Neither is awaited by the caller and store
failures never change the outcome of a check.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional, Set

from relay.app.core.kv_store import KVStore
from relay.app.core.logging import get_logger
from relay.app.services.rate_limit.local_cache import LocalRateCache
from relay.app.services.rate_limit.models import (
    LocalCacheEntry,
    RateLimitResult,
    RateLimitState,
)

logger = get_logger(__name__)

DEFAULT_TOKENS_PER_MINUTE = 60
DEFAULT_KV_TTL_SECONDS = 3600

CLIENT_LIMIT_REASON = "Client rate limit exceeded"
PROXY_LIMIT_REASON = "Proxy rate limit exceeded"


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class TokenBucketRateLimiter:
    """Token bucket admission control keyed by arbitrary string identity.

    The bucket holds up to ``capacity`` tokens and refills at
    ``capacity / 60`` tokens per second, i.e. one request per second in the
    steady state with bursts up to ``capacity``.

    Usage:
        limiter = TokenBucketRateLimiter(store=get_kv_store(), capacity=60)
        result = await limiter.admit_combined("203.0.113.7", "https://proxy/jsonrpc")
        if not result.allowed:
            raise RateLimitError(result.reason)
    """

    KEY_PREFIX = "rate"

    def __init__(
        self,
        store: KVStore,
        cache: Optional[LocalRateCache] = None,
        capacity: int = DEFAULT_TOKENS_PER_MINUTE,
        kv_ttl_seconds: int = DEFAULT_KV_TTL_SECONDS,
        clock: Optional[Callable[[], int]] = None,
    ):
        """Initialize the limiter.

        Args:
            store: Durable key-value store shared across instances
            cache: Local cache; a private one with a 15s TTL is created if omitted
            capacity: Bucket size (tokens per minute)
            kv_ttl_seconds: Expiration of records written to the store
            clock: Returns the current time in epoch milliseconds
        """
        self.store = store
        self.cache = cache if cache is not None else LocalRateCache()
        self.capacity = capacity
        self.refill_rate = capacity / 60  # tokens per second
        self.kv_ttl_seconds = kv_ttl_seconds
        self._clock = clock or _now_ms
        self._pending: Set[asyncio.Task] = set()

    def _make_key(self, identity: str) -> str:
        return f"{self.KEY_PREFIX}:{identity}"

    def _refill(self, tokens: float, last_refill: int, now: int) -> float:
        elapsed = max(0, now - last_refill) / 1000
        return min(float(self.capacity), tokens + elapsed * self.refill_rate)

    async def admit(self, identity: str) -> bool:
        """Check one identity's bucket and consume a token if one is available.

        Args:
            identity: Bucket key (client IP, egress URL, ...)

        Returns:
            True if the request is admitted
        """
        key = self._make_key(identity)
        now = self._clock()

        cached = self.cache.get_fresh(key, now)
        if cached is not None:
            tokens = self._refill(cached.tokens, cached.last_refill, now)
        else:
            # Optimistic full bucket; the durable view lands in the cache later
            tokens = float(self.capacity)
            self._detach(self._refresh_from_store(identity, now), f"refresh {key}")

        allowed = tokens >= 1
        if allowed:
            tokens -= 1

        self.cache.set(key, LocalCacheEntry(tokens=tokens, last_refill=now, last_update=now))
        self._detach(
            self._persist(RateLimitState(identity=identity, tokens=tokens, last_refill=now)),
            f"persist {key}",
        )
        return allowed

    async def admit_combined(
        self, client_identity: str, egress_identity: Optional[str] = None
    ) -> RateLimitResult:
        """Check the client bucket, then the egress bucket if one is given.

        Each bucket consumes independently: a client token is spent even when
        the egress bucket rejects afterwards.
        """
        if not await self.admit(client_identity):
            return RateLimitResult(allowed=False, reason=CLIENT_LIMIT_REASON)

        if egress_identity:
            if not await self.admit(egress_identity):
                return RateLimitResult(allowed=False, reason=PROXY_LIMIT_REASON)

        return RateLimitResult(allowed=True)

    async def _refresh_from_store(self, identity: str, now: int) -> None:
        key = self._make_key(identity)
        existing = await self.store.get(key)
        if not existing:
            return
        state = RateLimitState.from_dict(identity, existing)
        tokens = self._refill(state.tokens, state.last_refill, now)
        self.cache.set(key, LocalCacheEntry(tokens=tokens, last_refill=now, last_update=now))

    async def _persist(self, state: RateLimitState) -> None:
        await self.store.put(
            self._make_key(state.identity),
            state.to_dict(),
            expiration_ttl=self.kv_ttl_seconds,
        )

    def _detach(self, coro: Awaitable[Any], action: str) -> None:
        """Run ``coro`` in the background; its result is intentionally discarded."""
        task = asyncio.ensure_future(coro)
        self._pending.add(task)

        def _done(t: asyncio.Task) -> None:
            self._pending.discard(t)
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                logger.debug(f"Rate limit store {action} failed: {type(exc).__name__}: {exc}")

        task.add_done_callback(_done)

    async def drain(self) -> None:
        """Wait for all detached store operations to finish (shutdown and tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
