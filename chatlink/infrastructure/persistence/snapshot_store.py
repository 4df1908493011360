"""Snapshot store implementations.

`InMemorySnapshotStore` keeps values for the life of the process;
`DiskSnapshotStore` persists them between runs with diskcache. Values are
stored as JSON text so a snapshot never depends on pickled classes.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import diskcache as dc

from chatlink.domain.interfaces.snapshot_store import SnapshotStore

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_DIR = Path.home() / ".chatlink" / "snapshots"


class InMemorySnapshotStore(SnapshotStore):
    """Process-lifetime store, mostly useful in tests."""

    def __init__(self) -> None:
        self._values: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._values.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: Any) -> None:
        self._values[key] = json.dumps(value)

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class DiskSnapshotStore(SnapshotStore):
    """Store persisted on disk through diskcache."""

    def __init__(self, directory: Union[str, Path] = DEFAULT_SNAPSHOT_DIR):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._cache = dc.Cache(str(self.directory), timeout=1)
        logger.info(f"Snapshot store opened at: {self._cache.directory}")

    def get(self, key: str) -> Optional[Any]:
        raw = self._cache.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Discarding unreadable snapshot '{key}': {e}")
            self._cache.delete(key)
            return None

    def set(self, key: str, value: Any) -> None:
        self._cache.set(key, json.dumps(value))

    def remove(self, key: str) -> None:
        self._cache.delete(key)

    def close(self) -> None:
        self._cache.close()
