"""
Time-boxed memoization of successful fetch results.
"""
import logging
import time
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

from .config import CacheConfig, merge_cache_config
from .types import CacheEntry

T = TypeVar("T")

logger = logging.getLogger("fetch_resilience.cache")


class CacheStore(Generic[T]):
    """
    In-memory TTL cache keyed by request identity.

    Expiry is lazy: a stale entry reads as a miss and stays in place until
    a fresh result for the same key overwrites it. There is no size bound
    and no background eviction.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = merge_cache_config(config)
        self._clock = clock
        self._entries: Dict[str, CacheEntry[T]] = {}
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> Optional[CacheEntry[T]]:
        """Return the entry for key if it is still fresh, else None."""
        entry = self._entries.get(key)
        if entry is None or not self.is_fresh(entry):
            self._misses += 1
            logger.debug(f"cache miss: {key}{' (stale)' if entry else ''}")
            return None
        self._hits += 1
        logger.debug(f"cache hit: {key}")
        return entry

    def set(self, key: str, data: T) -> CacheEntry[T]:
        """Store data under key, overwriting any previous entry."""
        entry = CacheEntry(data=data, stored_at=self._clock())
        self._entries[key] = entry
        return entry

    def is_fresh(self, entry: CacheEntry[Any]) -> bool:
        return self._clock() - entry.stored_at < self._config.ttl_seconds

    def delete(self, key: str) -> bool:
        """Delete an entry."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Remove all entries."""
        self._entries.clear()

    @property
    def size(self) -> int:
        """Number of stored entries, stale ones included."""
        return len(self._entries)

    @property
    def ttl_seconds(self) -> float:
        return self._config.ttl_seconds

    def get_stats(self) -> dict:
        return {"entries": len(self._entries), "hits": self._hits, "misses": self._misses}


def create_cache_store(
    ttl_seconds: float = 300.0,
    clock: Callable[[], float] = time.monotonic,
) -> CacheStore:
    """Create a cache store."""
    return CacheStore(CacheConfig(ttl_seconds=ttl_seconds), clock)
