"""Domain Events related to API calls and resilience.

Examples include events for when calls are deferred, retried, deduplicated,
served from cache, fail, or succeed.
"""

from dataclasses import dataclass, field
import time
from typing import Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


# --- Specific API Events ---

@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when a network call is about to be made."""
    method: str
    endpoint: str
    request_key: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when a network call succeeds."""
    method: str
    endpoint: str
    latency_ms: float
    status: Optional[int] = None
    request_key: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when a call fails definitively (after retries)."""
    method: str
    endpoint: str
    error_type: str
    error_message: str
    status: Optional[int] = None
    request_key: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class ApiCallDeferred(DomainEvent):
    """Event triggered when a call is deferred due to rate limiting."""
    request_key: str
    wait_time_seconds: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a rate-limited call."""
    request_key: str
    attempt_number: int
    delay_seconds: float
    timestamp: float = field(default_factory=time.time)


@dataclass
class CacheHit(DomainEvent):
    """Event triggered when a read is served from the response cache."""
    request_key: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class RequestDeduplicated(DomainEvent):
    """Event triggered when a call joins an identical request already in flight."""
    request_key: str
    timestamp: float = field(default_factory=time.time)


@dataclass
class SessionInvalidated(DomainEvent):
    """Event triggered when the server rejects the credential (HTTP 401)."""
    endpoint: str
    reason: str = "unauthorized"
    timestamp: float = field(default_factory=time.time)
