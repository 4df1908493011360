"""Transport adapter over httpx.

Implements the Transport port with a shared ``httpx.AsyncClient``.
Network-level faults (DNS, refused connections, timeouts) are raised as
ConnectivityError; every received response is returned as-is.
"""

import logging
from typing import Dict, Optional

import httpx

from chatlink.domain.interfaces.transport import Transport, TransportResponse
from chatlink.infrastructure.http.errors import ConnectivityError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_CONNECT_TIMEOUT_SECONDS = 5.0


class HttpxTransport(Transport):
    """Transport backed by httpx.AsyncClient."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initializes the transport.

        Args:
            timeout: Overall request timeout in seconds.
            client: Pre-configured client (e.g. with a mock transport in tests).
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=min(timeout, DEFAULT_CONNECT_TIMEOUT_SECONDS)),
        )

    async def perform_call(
        self,
        url: str,
        method: str,
        headers: Dict[str, str],
        body: Optional[str] = None,
    ) -> TransportResponse:
        try:
            response = await self._client.request(
                method,
                url,
                headers=headers,
                content=body.encode("utf-8") if body is not None else None,
            )
        except httpx.TransportError as e:
            logger.warning(f"Network error calling {method} {url}: {type(e).__name__}: {e}")
            raise ConnectivityError(cause=e) from e

        return TransportResponse(
            status=response.status_code,
            reason=response.reason_phrase,
            text=response.text,
            headers=dict(response.headers),
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
