"""Error taxonomy of the resilient client.

These exceptions are raised inside a call attempt and classified by the
retry policy; `ResilientClient.call` converts every one of them into a
`Failure` before returning, so none crosses the public boundary.
"""

from typing import Any, Dict, Optional

from chatlink.domain.models.result import ErrorKind, Failure

CONNECTIVITY_MESSAGE = "Connection error. Check your internet connection and try again."
SESSION_EXPIRED_MESSAGE = "Session expired. Please log in to continue."
NOT_AUTHENTICATED_MESSAGE = "User not authenticated. Please log in to continue."


class ApiError(Exception):
    """Base class for failures of a single call attempt."""

    kind: ErrorKind = ErrorKind.VALIDATION_OR_SERVER

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status = status
        self.payload = payload
        super().__init__(message)

    def to_failure(self) -> Failure:
        return Failure(error=self.message, kind=self.kind, status=self.status, payload=self.payload)


class ConnectivityError(ApiError):
    """No usable response reached the client (DNS, network, timeout, non-JSON body)."""
    kind = ErrorKind.CONNECTIVITY

    def __init__(self, message: str = CONNECTIVITY_MESSAGE, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class RateLimitedError(ApiError):
    """The server signalled backpressure (HTTP 429). The only retryable class."""
    kind = ErrorKind.RATE_LIMITED


class AuthenticationError(ApiError):
    """The credential is missing (required auth) or was rejected (HTTP 401)."""
    kind = ErrorKind.AUTHENTICATION


class ApiResponseError(ApiError):
    """Any other non-2xx response, or a 2xx envelope with ``success: false``."""
    kind = ErrorKind.VALIDATION_OR_SERVER


class DomainError(ApiError):
    """Subscription-gated failure carrying its structured payload."""
    kind = ErrorKind.DOMAIN

    @property
    def error_code(self) -> Optional[str]:
        return (self.payload or {}).get("error_code")
