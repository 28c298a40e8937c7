"""Fast, process-local cache in front of the durable rate-limit store."""

from collections import OrderedDict
from typing import Optional

from relay.app.services.rate_limit.models import LocalCacheEntry


class LocalRateCache:
    """LRU cache of bucket states with a freshness window.

    Entries older than ``ttl_seconds`` are treated as stale: ``get_fresh``
    ignores them so the limiter re-derives the state. Concurrent checks for
    the same identity race on this cache; accounting is approximate.

    Memory optimization:
    - Uses OrderedDict for LRU cache behavior
    - Limits max entries to prevent unbounded memory growth
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(self, ttl_seconds: float = 15.0, max_entries: int = DEFAULT_MAX_ENTRIES):
        self.ttl_ms = int(ttl_seconds * 1000)
        self._max_entries = max_entries
        self._entries: OrderedDict[str, LocalCacheEntry] = OrderedDict()

    def get_fresh(self, key: str, now_ms: int) -> Optional[LocalCacheEntry]:
        """Return the entry for ``key`` if it was updated within the TTL."""
        entry = self._entries.get(key)
        if entry is None or now_ms - entry.last_update >= self.ttl_ms:
            return None
        self._entries.move_to_end(key)
        return entry

    def set(self, key: str, entry: LocalCacheEntry) -> None:
        self._entries[key] = entry
        self._entries.move_to_end(key)
        self._enforce_lru_limit()

    def _enforce_lru_limit(self) -> None:
        """Enforce max entries limit using LRU eviction."""
        if len(self._entries) > self._max_entries:
            # Remove oldest 20% of entries
            remove_count = max(1, int(self._max_entries * 0.2))
            for _ in range(remove_count):
                self._entries.popitem(last=False)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
