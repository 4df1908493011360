"""Request deduplication.

Collapses concurrently issued identical requests into a single in-flight
call: every caller arriving while a key is in flight awaits the same task
and observes the identical outcome, errors included.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from chatlink.domain.events.api_events import DomainEvent, RequestDeduplicated
from chatlink.domain.models.common import RequestKey

logger = logging.getLogger(__name__)


class RequestDeduplicator:
    """Keeps at most one live call per request key."""

    def __init__(self, event_listener: Optional[Callable[[DomainEvent], None]] = None):
        # InFlightRegistry: request key -> shared task
        self._in_flight: Dict[RequestKey, "asyncio.Task[Any]"] = {}
        self._event_listener = event_listener

    def in_flight(self, key: RequestKey) -> bool:
        return key in self._in_flight

    def __len__(self) -> int:
        return len(self._in_flight)

    async def _run_and_release(self, key: RequestKey, factory: Callable[[], Awaitable[Any]]) -> Any:
        try:
            return await factory()
        finally:
            # Runs before the task settles, so no waiter can see a dangling entry
            self._in_flight.pop(key, None)

    async def run(self, key: RequestKey, factory: Callable[[], Awaitable[Any]]) -> Any:
        """Runs factory for key unless an identical call is already in flight.

        Args:
            key: Request key identifying the logical request.
            factory: Zero-argument coroutine function performing the call.

        Returns:
            The shared outcome of the in-flight call.
        """
        task = self._in_flight.get(key)
        if task is not None:
            logger.debug(f"Joining in-flight request: {key}")
            if self._event_listener:
                self._event_listener(RequestDeduplicated(request_key=key))
        else:
            task = asyncio.ensure_future(self._run_and_release(key, factory))
            self._in_flight[key] = task
        # A cancelled waiter must not cancel the call other waiters share
        return await asyncio.shield(task)
