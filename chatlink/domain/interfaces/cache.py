"""Interface for the response cache.

Defines the contract for storing, retrieving and invalidating successful
read results keyed by request identity, with a fixed time-to-live.
"""

import abc
from typing import Optional

from chatlink.domain.models.common import CachePrefix, RequestKey
from chatlink.domain.models.result import Result


class ResponseCache(abc.ABC):
    """Abstract Base Class for response caching."""

    @abc.abstractmethod
    def get(self, key: RequestKey) -> Optional[Result]:
        """Retrieves a cached result.

        Args:
            key: The request key to look up.

        Returns:
            The cached Result while it is fresh, otherwise None. An expired
            entry is removed as part of the lookup.
        """
        pass

    @abc.abstractmethod
    def set(self, key: RequestKey, value: Result) -> None:
        """Stores a result under the given key, stamped with the current time."""
        pass

    @abc.abstractmethod
    def invalidate(self, prefix: Optional[CachePrefix] = None) -> int:
        """Removes entries.

        Args:
            prefix: When given, only keys starting with it are removed;
                otherwise the whole cache is cleared.

        Returns:
            The number of entries removed.
        """
        pass
