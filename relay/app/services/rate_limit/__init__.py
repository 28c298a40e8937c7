"""Per-identity token bucket rate limiting with a local cache and durable store."""

from relay.app.core.config import settings
from relay.app.core.kv_store import KVStore, get_kv_store

from relay.app.services.rate_limit.local_cache import LocalRateCache
from relay.app.services.rate_limit.limiter import (
    CLIENT_LIMIT_REASON,
    PROXY_LIMIT_REASON,
    TokenBucketRateLimiter,
)
from relay.app.services.rate_limit.models import (
    LocalCacheEntry,
    RateLimitResult,
    RateLimitState,
)

__all__ = [
    "CLIENT_LIMIT_REASON",
    "PROXY_LIMIT_REASON",
    "LocalCacheEntry",
    "LocalRateCache",
    "RateLimitResult",
    "RateLimitState",
    "TokenBucketRateLimiter",
    "create_rate_limiter",
]


def create_rate_limiter(store: KVStore | None = None) -> TokenBucketRateLimiter:
    """Build a limiter from settings, sharing one local cache per limiter."""
    return TokenBucketRateLimiter(
        store=store if store is not None else get_kv_store(),
        cache=LocalRateCache(ttl_seconds=settings.rate_limit_cache_ttl_seconds),
        capacity=settings.rate_limit_capacity,
        kv_ttl_seconds=settings.rate_limit_kv_ttl_seconds,
    )
