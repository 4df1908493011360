import pytest

from chatlink.infrastructure.persistence.snapshot_store import DiskSnapshotStore, InMemorySnapshotStore

SNAPSHOT = {"conversations": [{"id": "c1", "title": "Chat"}], "lastUpdated": "2024-05-01T10:00:00Z", "userId": "u1"}


@pytest.fixture
def disk_store(tmp_path):
    store = DiskSnapshotStore(tmp_path / "snapshots")
    yield store
    store.close()


def test_in_memory_store_roundtrip():
    store = InMemorySnapshotStore()
    assert store.get("conversations-cache") is None

    store.set("conversations-cache", SNAPSHOT)
    assert store.get("conversations-cache") == SNAPSHOT

    store.remove("conversations-cache")
    assert store.get("conversations-cache") is None


def test_disk_store_persists_between_instances(tmp_path):
    first = DiskSnapshotStore(tmp_path / "snapshots")
    first.set("conversations-cache", SNAPSHOT)
    first.close()

    second = DiskSnapshotStore(tmp_path / "snapshots")
    try:
        assert second.get("conversations-cache") == SNAPSHOT
    finally:
        second.close()


def test_disk_store_remove(disk_store: DiskSnapshotStore):
    disk_store.set("conversations-cache", SNAPSHOT)
    disk_store.remove("conversations-cache")
    assert disk_store.get("conversations-cache") is None
    # Removing a missing key is harmless
    disk_store.remove("conversations-cache")


def test_disk_store_discards_unreadable_value(disk_store: DiskSnapshotStore):
    disk_store._cache.set("conversations-cache", "{not json")
    assert disk_store.get("conversations-cache") is None
    assert disk_store._cache.get("conversations-cache") is None
