"""Implementation of a per-key rate limiter.

Enforces a minimum spacing between repeated calls sharing a request key, to
protect the remote API from bursts caused by rapid UI re-renders. This is not
global throughput shaping: different keys never wait on each other.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Optional

from chatlink.domain.events.api_events import ApiCallDeferred, DomainEvent
from chatlink.domain.models.common import RequestKey

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL_SECONDS = 1.0


class RateLimiter:
    """Minimum-interval rate limiter keyed by request key."""

    def __init__(
        self,
        min_interval: float = DEFAULT_MIN_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        event_listener: Optional[Callable[[DomainEvent], None]] = None,
    ):
        """Initializes the rate limiter.

        Args:
            min_interval: Minimum number of seconds between two calls with the same key.
            clock: Monotonic time source.
            sleep: Coroutine used to wait; injectable for tests.
            event_listener: Optional callback receiving ApiCallDeferred events.
        """
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._event_listener = event_listener
        self._last_call: Dict[RequestKey, float] = {}
        self._locks: Dict[RequestKey, asyncio.Lock] = {}
        self._pending: Dict[RequestKey, int] = {}
        logger.info(f"RateLimiter initialized: min interval {min_interval}s per key")

    def _lock_for(self, key: RequestKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def get_wait_time(self, key: RequestKey) -> float:
        """Estimates the time needed before the next call with key is permitted."""
        last = self._last_call.get(key)
        if last is None:
            return 0.0
        return max(0.0, last + self.min_interval - self._clock())

    async def wait(self, key: RequestKey) -> None:
        """Waits until a call with key is permitted, then records it."""
        self._pending[key] = self._pending.get(key, 0) + 1
        try:
            # Callers sharing a key queue on the lock so each sees the previous timestamp
            async with self._lock_for(key):
                wait_time = self.get_wait_time(key)
                if wait_time > 0:
                    logger.debug(f"Rate limiting {key}: waiting {wait_time:.2f}s")
                    if self._event_listener:
                        self._event_listener(ApiCallDeferred(request_key=key, wait_time_seconds=wait_time))
                    await self._sleep(wait_time)
                now = self._clock()
                self._last_call[key] = now
                self._prune(now)
        finally:
            self._pending[key] -= 1
            if not self._pending[key]:
                del self._pending[key]

    def _prune(self, now: float) -> None:
        """Drops timestamps that no longer delay anyone, and idle locks."""
        for key in [k for k, last in self._last_call.items() if now - last >= self.min_interval]:
            del self._last_call[key]
        for key in [k for k in self._locks if k not in self._pending and k not in self._last_call]:
            del self._locks[key]

    def reset(self) -> None:
        """Forgets all recorded call timestamps and idle locks."""
        self._last_call.clear()
        for key in [k for k in self._locks if k not in self._pending]:
            del self._locks[key]
