"""Resilient client: the single call contract used by all data operations.

Composes the response cache, request deduplicator, rate limiter, auth token
source and retry policy around a Transport. Every call resolves to a
`Result`; no exception crosses `call` except cancellation.

Per call:
    1. compute the request key;
    2. reads not skipping the cache return a fresh cached result;
    3. the deduplicated attempt waits on the rate limiter, resolves the auth
       header, performs the network call and classifies the outcome; a
       rate-limited attempt is re-run by the retry policy; a successful read
       is stored in the cache.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from chatlink.domain.events.api_events import (
    ApiCallFailed,
    ApiCallInitiated,
    ApiCallSucceeded,
    CacheHit,
    DomainEvent,
    SessionInvalidated,
)
from chatlink.domain.interfaces.auth import AuthTokenSource
from chatlink.domain.interfaces.cache import ResponseCache
from chatlink.domain.interfaces.transport import Transport, TransportResponse
from chatlink.domain.models.common import (
    SUBSCRIPTION_ERROR_CODES,
    CachePrefix,
    RequestKey,
    is_read_method,
    make_request_key,
    serialize_body,
)
from chatlink.domain.models.result import ErrorKind, Failure, Result, Success
from chatlink.infrastructure.cache.response_cache import InMemoryResponseCache
from chatlink.infrastructure.http.errors import (
    NOT_AUTHENTICATED_MESSAGE,
    SESSION_EXPIRED_MESSAGE,
    ApiError,
    ApiResponseError,
    AuthenticationError,
    ConnectivityError,
    DomainError,
    RateLimitedError,
)
from chatlink.infrastructure.resilience.api_retry import RetryPolicy
from chatlink.infrastructure.resilience.deduplicator import RequestDeduplicator
from chatlink.infrastructure.resilience.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "Error communicating with the server"


def log_event(event: DomainEvent) -> None:
    """Default event listener: events only go to the debug log."""
    logger.debug(f"EVENT: {event}")


def _extract_error_message(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        for field_name in ("error", "message"):
            value = payload.get(field_name)
            if isinstance(value, str) and value:
                return value
    return None


class ResilientClient:
    """Deduplicating, caching, rate-limited, retrying API client."""

    def __init__(
        self,
        base_url: str,
        transport: Transport,
        token_source: AuthTokenSource,
        cache: Optional[ResponseCache] = None,
        rate_limiter: Optional[RateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        deduplicator: Optional[RequestDeduplicator] = None,
        on_session_invalidated: Optional[Callable[[], None]] = None,
        event_listener: Optional[Callable[[DomainEvent], None]] = None,
    ):
        """Initializes the ResilientClient.

        Args:
            base_url: API base URL; endpoints are appended to it.
            transport: Transport performing the network calls.
            token_source: Source of the bearer token.
            cache: Response cache for reads (in-memory, 60s TTL by default).
            rate_limiter: Per-key rate limiter (1s minimum interval by default).
            retry_policy: Backoff policy for rate-limited calls.
            deduplicator: In-flight request registry.
            on_session_invalidated: Called when the server answers 401.
            event_listener: Receives domain events; defaults to debug logging.
        """
        self.base_url = base_url.rstrip("/")
        self.transport = transport
        self.token_source = token_source
        self.event_listener = event_listener or log_event
        self.cache = cache if cache is not None else InMemoryResponseCache()
        self.rate_limiter = rate_limiter or RateLimiter(event_listener=self.event_listener)
        self.retry_policy = retry_policy or RetryPolicy(event_listener=self.event_listener)
        self.deduplicator = deduplicator or RequestDeduplicator(event_listener=self.event_listener)
        self.on_session_invalidated = on_session_invalidated
        logger.info(f"ResilientClient initialized for {self.base_url}")

    # --- Public call contract ---

    async def call(
        self,
        endpoint: str,
        method: str = "GET",
        body: Any = None,
        *,
        require_auth: bool = True,
        skip_cache: bool = False,
    ) -> Result:
        """Performs a logical request and returns its normalized Result.

        Args:
            endpoint: Path relative to the base URL, e.g. '/chat/conversations'.
            method: HTTP method.
            body: JSON-serializable request body.
            require_auth: When True an absent token fails without a network
                call; when False the call proceeds unauthenticated.
            skip_cache: Bypass the cache lookup and store for reads.
        """
        method = method.upper()
        key = make_request_key(method, endpoint, body)
        is_read = is_read_method(method)

        if is_read and not skip_cache:
            cached = self.cache.get(key)
            if cached is not None:
                self.event_listener(CacheHit(request_key=key))
                return cached

        async def attempt_with_retry() -> Result:
            return await self._execute(key, endpoint, method, body, require_auth, is_read and not skip_cache)

        try:
            return await self.deduplicator.run(key, attempt_with_retry)
        except Exception as e:
            logger.error(f"Unexpected error during {method} {endpoint}: {e}", exc_info=True)
            return Failure(error=UNEXPECTED_ERROR_MESSAGE, kind=ErrorKind.UNEXPECTED)

    async def get(self, endpoint: str, *, require_auth: bool = True, skip_cache: bool = False) -> Result:
        return await self.call(endpoint, "GET", require_auth=require_auth, skip_cache=skip_cache)

    async def post(self, endpoint: str, data: Any = None, *, require_auth: bool = True) -> Result:
        return await self.call(endpoint, "POST", data, require_auth=require_auth)

    async def put(self, endpoint: str, data: Any = None, *, require_auth: bool = True) -> Result:
        return await self.call(endpoint, "PUT", data, require_auth=require_auth)

    async def delete(self, endpoint: str, *, require_auth: bool = True) -> Result:
        return await self.call(endpoint, "DELETE", require_auth=require_auth)

    def invalidate(self, prefix: Optional[str] = None) -> int:
        """Invalidates cached reads; a prefix selects a key family."""
        return self.cache.invalidate(CachePrefix(prefix) if prefix is not None else None)

    def invalidate_endpoint(self, endpoint_prefix: str) -> int:
        """Invalidates cached GETs whose endpoint starts with endpoint_prefix."""
        return self.invalidate(f"GET:{endpoint_prefix}")

    async def aclose(self) -> None:
        await self.transport.close()

    # --- Internals ---

    async def _execute(
        self,
        key: RequestKey,
        endpoint: str,
        method: str,
        body: Any,
        require_auth: bool,
        store_in_cache: bool,
    ) -> Result:
        async def attempt() -> Any:
            return await self._attempt(key, endpoint, method, body, require_auth)

        try:
            data = await self.retry_policy.execute(key, attempt)
        except ApiError as e:
            return self._to_failure(e, key, endpoint, method)

        result = Success(data=data)
        if store_in_cache:
            self.cache.set(key, result)
        return result

    async def _resolve_headers(self, require_auth: bool) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = await self.token_source.current_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        elif require_auth:
            logger.info("Token not found for a request that requires authentication")
            raise AuthenticationError(NOT_AUTHENTICATED_MESSAGE)
        return headers

    async def _attempt(
        self,
        key: RequestKey,
        endpoint: str,
        method: str,
        body: Any,
        require_auth: bool,
    ) -> Any:
        """One full attempt: rate limit, auth, network call, classification."""
        await self.rate_limiter.wait(key)
        headers = await self._resolve_headers(require_auth)

        url = f"{self.base_url}{endpoint}"
        self.event_listener(ApiCallInitiated(method=method, endpoint=endpoint, request_key=key))
        start_time = time.perf_counter()
        try:
            response = await self.transport.perform_call(url, method, headers, serialize_body(body))
        except ApiError:
            raise
        except OSError as e:
            raise ConnectivityError(cause=e) from e
        latency_ms = (time.perf_counter() - start_time) * 1000

        data = self._classify(response)
        self.event_listener(
            ApiCallSucceeded(method=method, endpoint=endpoint, latency_ms=latency_ms, status=response.status, request_key=key)
        )
        return data

    def _classify(self, response: TransportResponse) -> Any:
        """Maps a response to its envelope data, or raises the matching ApiError."""
        try:
            payload = response.json()
        except ValueError:
            payload = None
            if response.ok:
                # A success without a JSON envelope is a broken exchange
                raise ConnectivityError()

        if response.status == 429:
            raise RateLimitedError(
                _extract_error_message(payload) or "Too many requests", status=429, payload=_as_dict(payload)
            )
        if response.status == 401:
            raise AuthenticationError(SESSION_EXPIRED_MESSAGE, status=401, payload=_as_dict(payload))

        if not response.ok or (isinstance(payload, dict) and payload.get("success") is False):
            message = _extract_error_message(payload) or _status_line(response)
            payload_dict = _as_dict(payload)
            if payload_dict and payload_dict.get("error_code") in SUBSCRIPTION_ERROR_CODES:
                raise DomainError(message, status=response.status, payload=payload_dict)
            raise ApiResponseError(message, status=response.status, payload=payload_dict)

        if isinstance(payload, dict):
            return payload.get("data")
        return payload

    def _to_failure(self, error: ApiError, key: RequestKey, endpoint: str, method: str) -> Failure:
        if isinstance(error, AuthenticationError) and error.status == 401:
            logger.warning(f"Authentication rejected for {method} {endpoint}; invalidating session")
            self.event_listener(SessionInvalidated(endpoint=endpoint))
            if self.on_session_invalidated:
                try:
                    self.on_session_invalidated()
                except Exception as e:
                    logger.error(f"Session invalidation handler failed: {e}", exc_info=True)

        self.event_listener(
            ApiCallFailed(
                method=method,
                endpoint=endpoint,
                error_type=type(error).__name__,
                error_message=error.message,
                status=error.status,
                request_key=key,
            )
        )
        logger.info(f"{method} {endpoint} failed ({error.kind.value}): {error.message}")
        return error.to_failure()


def _as_dict(payload: Any) -> Optional[Dict[str, Any]]:
    return payload if isinstance(payload, dict) else None


def _status_line(response: TransportResponse) -> str:
    if response.reason:
        return f"Error {response.status}: {response.reason}"
    return f"Error {response.status}"
