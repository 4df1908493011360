"""Cooperative cancellation for session operations.

Each operation category (selection, messaging) owns an `OperationScope`.
Starting an operation hands out a fresh `CancellationToken` and cancels the
previous one, so at every resumption point the operation can ask whether it
has been superseded.
"""

import itertools
from typing import Optional


class CancellationToken:
    """Generation token bound to the conversation an operation targets."""

    _generations = itertools.count(1)

    def __init__(self, conversation_id: Optional[str] = None):
        self.conversation_id = conversation_id
        self.generation = next(self._generations)
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "live"
        return f"CancellationToken(gen={self.generation}, conversation={self.conversation_id}, {state})"


class OperationScope:
    """Holds the latest token of one operation category."""

    def __init__(self, name: str):
        self.name = name
        self._current: Optional[CancellationToken] = None

    @property
    def current(self) -> Optional[CancellationToken]:
        return self._current

    def begin(self, conversation_id: Optional[str] = None) -> CancellationToken:
        """Supersedes any running operation of this category."""
        self.cancel()
        self._current = CancellationToken(conversation_id)
        return self._current

    def is_latest(self, token: CancellationToken) -> bool:
        return not token.cancelled and token is self._current

    def finish(self, token: CancellationToken) -> None:
        """Forgets token if it is still the latest one."""
        if token is self._current:
            self._current = None

    def cancel(self) -> None:
        if self._current is not None:
            self._current.cancel()
            self._current = None
