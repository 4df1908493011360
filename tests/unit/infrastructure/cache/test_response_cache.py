import pytest

from chatlink.domain.models.result import Success
from chatlink.infrastructure.cache.response_cache import InMemoryResponseCache

from conftest import FakeClock


@pytest.fixture
def cache(clock: FakeClock) -> InMemoryResponseCache:
    return InMemoryResponseCache(ttl_seconds=60.0, clock=clock)


def test_get_returns_value_just_before_ttl(cache: InMemoryResponseCache, clock: FakeClock):
    cache.set("GET:/assistants", Success(data=[1]))
    clock.advance(60.0 - 0.001)
    assert cache.get("GET:/assistants") == Success(data=[1])


def test_get_evicts_entry_after_ttl(cache: InMemoryResponseCache, clock: FakeClock):
    cache.set("GET:/assistants", Success(data=[1]))
    clock.advance(60.0 + 0.001)
    assert cache.get("GET:/assistants") is None
    assert len(cache) == 0


def test_missing_key_returns_none(cache: InMemoryResponseCache):
    assert cache.get("GET:/nothing") is None


def test_set_refreshes_stored_at(cache: InMemoryResponseCache, clock: FakeClock):
    cache.set("GET:/a", Success(data=1))
    clock.advance(50)
    cache.set("GET:/a", Success(data=2))
    clock.advance(50)
    assert cache.get("GET:/a") == Success(data=2)


def test_invalidate_with_prefix_only_removes_matching(cache: InMemoryResponseCache):
    cache.set("GET:/chat/conversations", Success(data=[]))
    cache.set("GET:/chat/conversations/c1/messages", Success(data=[]))
    cache.set("GET:/assistants", Success(data=[]))

    removed = cache.invalidate("GET:/chat/conversations")

    assert removed == 2
    assert cache.get("GET:/assistants") is not None
    assert cache.get("GET:/chat/conversations") is None


def test_invalidate_without_prefix_clears_everything(cache: InMemoryResponseCache):
    cache.set("GET:/a", Success(data=1))
    cache.set("GET:/b", Success(data=2))
    assert cache.invalidate() == 2
    assert len(cache) == 0


def test_oldest_entries_evicted_over_capacity(clock: FakeClock):
    cache = InMemoryResponseCache(ttl_seconds=60.0, max_items=2, clock=clock)
    cache.set("GET:/a", Success(data=1))
    cache.set("GET:/b", Success(data=2))
    cache.set("GET:/c", Success(data=3))
    assert cache.get("GET:/a") is None
    assert cache.get("GET:/b") == Success(data=2)
    assert cache.get("GET:/c") == Success(data=3)
