"""Concrete implementation of the in-memory Response Cache.

Memoizes successful read results for a fixed time-to-live. Expired entries
are evicted lazily when their key is looked up again; the cache is also
bounded in size, evicting the oldest insertions first.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from chatlink.domain.interfaces.cache import ResponseCache
from chatlink.domain.models.common import CachePrefix, RequestKey
from chatlink.domain.models.result import Result

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60.0
DEFAULT_MAX_ITEMS = 256


@dataclass
class CacheEntry:
    """Internal representation of a cache entry."""
    key: RequestKey
    value: Result
    stored_at: float


class InMemoryResponseCache(ResponseCache):
    """TTL cache of successful read results, keyed by request key."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_items: int = DEFAULT_MAX_ITEMS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initializes the cache.

        Args:
            ttl_seconds: Lifetime of an entry; fixed for the instance.
            max_items: Upper bound on the number of entries kept.
            clock: Time source, injectable for tests.
        """
        self.ttl_seconds = ttl_seconds
        self.max_items = max_items
        self._clock = clock
        self._entries: Dict[RequestKey, CacheEntry] = {}
        logger.info(f"ResponseCache initialized (ttl={ttl_seconds}s, max={max_items})")

    def __len__(self) -> int:
        return len(self._entries)

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.stored_at >= self.ttl_seconds

    def _prune(self) -> None:
        """Evicts the oldest insertions while over the size limit."""
        while len(self._entries) > self.max_items:
            oldest_key = next(iter(self._entries))
            del self._entries[oldest_key]
            logger.debug(f"Evicted oldest cache entry: {oldest_key}")

    def get(self, key: RequestKey) -> Optional[Result]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._is_expired(entry, self._clock()):
            del self._entries[key]
            logger.debug(f"Cache entry expired for key: {key}")
            return None
        logger.debug(f"Cache hit for key: {key}")
        return entry.value

    def set(self, key: RequestKey, value: Result) -> None:
        # Re-insert so the entry moves to the end of the eviction order
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(key=key, value=value, stored_at=self._clock())
        self._prune()
        logger.debug(f"Stored response in cache: key={key}")

    def invalidate(self, prefix: Optional[CachePrefix] = None) -> int:
        if prefix is None:
            removed = len(self._entries)
            self._entries.clear()
            logger.info(f"Cleared response cache ({removed} entries).")
            return removed

        matching = [k for k in self._entries if k.startswith(prefix)]
        for k in matching:
            del self._entries[k]
        logger.debug(f"Invalidated {len(matching)} cache entries with prefix: {prefix}")
        return len(matching)
