"""Retry policy for calls rejected with backpressure.

Implements exponential backoff for the single recoverable error class, the
server's rate-limit signal (HTTP 429). Every other failure propagates
untouched on the first attempt. This is the only place retries occur;
callers above it never retry on their own, so backoff never compounds.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type

from chatlink.domain.events.api_events import DomainEvent, RetryScheduled
from chatlink.domain.models.common import RequestKey
from chatlink.infrastructure.http.errors import RateLimitedError

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY_SECONDS = 2.0

RETRYABLE_EXCEPTIONS: Tuple[Type[BaseException], ...] = (RateLimitedError,)


class RetryPolicy:
    """Per-key exponential backoff restricted to rate-limited failures."""

    def __init__(
        self,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        event_listener: Optional[Callable[[DomainEvent], None]] = None,
    ):
        """Initializes the RetryPolicy.

        Args:
            max_retries: Maximum number of retries after the first attempt.
            base_delay: Delay before the first retry; doubles on each further retry.
            sleep: Coroutine used to wait; injectable for tests.
            event_listener: Optional callback receiving RetryScheduled events.
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.retryable_exceptions = RETRYABLE_EXCEPTIONS
        self._sleep = sleep
        self._event_listener = event_listener
        # RetryState: request key -> retries already performed
        self._attempts: Dict[RequestKey, int] = {}
        logger.info(f"RetryPolicy initialized: max_retries={max_retries}, base_delay={base_delay}s")

    def attempts_for(self, key: RequestKey) -> int:
        """Returns the number of retries currently recorded for key."""
        return self._attempts.get(key, 0)

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1``: base * 2 ** attempt."""
        return self.base_delay * (2 ** attempt)

    async def execute(self, key: RequestKey, func: Callable[[], Awaitable[Any]]) -> Any:
        """Runs func, retrying it with exponential backoff while it is rate limited.

        Args:
            key: Request key the retry counter is tracked under.
            func: Zero-argument coroutine function performing one full attempt.

        Returns:
            The result of the first successful attempt.

        Raises:
            RateLimitedError: If every attempt was rate limited.
            Exception: Any non-retryable error, on the attempt that raised it.
        """
        while True:
            try:
                result = await func()
            except self.retryable_exceptions as e:
                attempt = self._attempts.get(key, 0)
                if attempt >= self.max_retries:
                    logger.error(f"Max retries ({self.max_retries}) reached for {key}. Last error: {e}")
                    self._attempts.pop(key, None)
                    raise
                delay = self.backoff_delay(attempt)
                self._attempts[key] = attempt + 1
                logger.warning(
                    f"Rate limited on {key}. Retrying in {delay:.2f}s "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                if self._event_listener:
                    self._event_listener(RetryScheduled(request_key=key, attempt_number=attempt + 1, delay_seconds=delay))
                try:
                    await self._sleep(delay)
                except asyncio.CancelledError:
                    self._attempts.pop(key, None)
                    raise
            except BaseException:
                self._attempts.pop(key, None)
                raise
            else:
                self._attempts.pop(key, None)
                return result
