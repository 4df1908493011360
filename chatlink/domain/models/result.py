"""Normalized outcome of every data operation.

All client and facade operations resolve to a ``Result``: either a
``Success`` carrying the response data, or a ``Failure`` carrying a
human-readable message, an ``ErrorKind`` and, when available, the HTTP
status and the decoded response body.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union


class ErrorKind(str, enum.Enum):
    """Failure classes produced by the resilient client."""
    CONNECTIVITY = "connectivity"          # No response reached the client
    RATE_LIMITED = "rate_limited"          # 429, the only retryable class
    AUTHENTICATION = "authentication"      # 401 or missing required token
    VALIDATION_OR_SERVER = "server"        # Any other non-2xx
    DOMAIN = "domain"                      # Subscription-gated condition
    UNEXPECTED = "unexpected"              # Defensive catch-all


@dataclass(frozen=True)
class Success:
    """Successful operation."""
    data: Any = None
    success: bool = field(default=True, init=False)


@dataclass(frozen=True)
class Failure:
    """Failed operation, never raised, always returned."""
    error: str
    kind: ErrorKind = ErrorKind.VALIDATION_OR_SERVER
    status: Optional[int] = None
    payload: Optional[Dict[str, Any]] = None
    success: bool = field(default=False, init=False)

    @property
    def error_code(self) -> Optional[str]:
        """The domain ``error_code`` carried in the response body, if any."""
        if self.payload:
            code = self.payload.get("error_code")
            return str(code) if code is not None else None
        return None


Result = Union[Success, Failure]
