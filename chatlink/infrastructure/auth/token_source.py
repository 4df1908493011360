"""Bearer token sources.

`StaticTokenSource` holds a fixed credential (or none). `CallbackTokenSource`
asks a provider function on every call so the freshest token is always
used; the provider may be a plain function or a coroutine function.
"""

import inspect
import logging
from typing import Any, Callable, Optional

from chatlink.domain.interfaces.auth import AuthTokenSource
from chatlink.domain.models.common import BearerToken

logger = logging.getLogger(__name__)


class StaticTokenSource(AuthTokenSource):
    """Token source returning a fixed token; None means unauthenticated."""

    def __init__(self, token: Optional[str] = None):
        self._token = token

    def set_token(self, token: Optional[str]) -> None:
        self._token = token

    async def current_token(self) -> Optional[BearerToken]:
        return BearerToken(self._token) if self._token else None


class CallbackTokenSource(AuthTokenSource):
    """Token source delegating to a provider callable on every request."""

    def __init__(self, provider: Callable[[], Any]):
        self._provider = provider

    async def current_token(self) -> Optional[BearerToken]:
        try:
            token = self._provider()
            if inspect.isawaitable(token):
                token = await token
        except Exception as e:
            # The session provider is external; a failing lookup means "not signed in"
            logger.error(f"Error obtaining auth token: {e}", exc_info=True)
            return None
        return BearerToken(str(token)) if token else None
