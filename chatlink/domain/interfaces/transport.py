"""Interface for the remote call primitive.

Any HTTP-capable transport satisfying ``perform_call`` can back the
resilient client. Transports raise ``ConnectivityError`` when no response
reached the client at all.
"""

import abc
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class TransportResponse:
    """Raw response returned by a transport."""
    status: int
    reason: str = ""
    text: str = ""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        """Decodes the body as JSON.

        Raises:
            ValueError: If the body is not valid JSON.
        """
        return json.loads(self.text)


class Transport(abc.ABC):
    """Abstract Base Class for performing a single HTTP call."""

    @abc.abstractmethod
    async def perform_call(
        self,
        url: str,
        method: str,
        headers: Dict[str, str],
        body: Optional[str] = None,
    ) -> TransportResponse:
        """Performs one network call.

        Args:
            url: Absolute URL.
            method: HTTP method.
            headers: Request headers.
            body: Serialized JSON body, if any.

        Returns:
            The TransportResponse, whatever its status.

        Raises:
            ConnectivityError: If no response was received.
        """
        pass

    async def close(self) -> None:
        """Releases transport resources. Optional."""
        pass
