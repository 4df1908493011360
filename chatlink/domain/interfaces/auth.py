"""Interface for the bearer credential source.

Backed by an external session provider; the core only needs the freshest
known token, or None when the user is not authenticated.
"""

import abc
from typing import Optional

from chatlink.domain.models.common import BearerToken


class AuthTokenSource(abc.ABC):
    """Abstract Base Class supplying the current bearer token."""

    @abc.abstractmethod
    async def current_token(self) -> Optional[BearerToken]:
        """Returns the current token, or None if unauthenticated."""
        pass
