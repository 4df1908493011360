"""Interface for the persisted key-value store.

Used to keep a snapshot of the conversation list between runs so the UI
can paint it before the network answers. Implementations may be in-memory,
on-disk, or absent entirely.
"""

import abc
from typing import Any, Optional


class SnapshotStore(abc.ABC):
    """Abstract Base Class for a JSON key-value store."""

    @abc.abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Returns the JSON value stored under key, or None."""
        pass

    @abc.abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Stores a JSON-serializable value under key."""
        pass

    @abc.abstractmethod
    def remove(self, key: str) -> None:
        """Removes the value stored under key, if any."""
        pass
