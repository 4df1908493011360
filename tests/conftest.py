import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest
from typer.testing import CliRunner

from chatlink.core.api_service import ApiService
from chatlink.domain.interfaces.transport import Transport, TransportResponse
from chatlink.infrastructure.auth.token_source import StaticTokenSource
from chatlink.infrastructure.cache.response_cache import InMemoryResponseCache
from chatlink.infrastructure.config.settings import clear_test_config
from chatlink.infrastructure.http.client import ResilientClient
from chatlink.infrastructure.resilience.api_retry import RetryPolicy
from chatlink.infrastructure.resilience.deduplicator import RequestDeduplicator
from chatlink.infrastructure.resilience.rate_limiter import RateLimiter

BASE_URL = "http://api.test/api"


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSleep:
    """Async sleep that records the delay and advances the clock instead of waiting."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        self.clock.advance(delay)
        await asyncio.sleep(0)


class FakeTransport(Transport):
    """Scripted transport.

    Responses are queued per (method, path) and served in order; the last
    one for a route repeats until another is queued. A response may carry
    an asyncio.Event gate that must be set before the call completes, or an
    exception to raise.
    """

    def __init__(self, clock: Optional[FakeClock] = None):
        self.clock = clock
        self.calls: List[Dict[str, Any]] = []
        self._routes: Dict[Tuple[str, str], List[Dict[str, Any]]] = {}
        self.closed = False

    def add(
        self,
        method: str,
        path: str,
        body: Any = None,
        status: int = 200,
        *,
        raw: Optional[str] = None,
        gate: Optional[asyncio.Event] = None,
        exception: Optional[BaseException] = None,
        reason: str = "",
    ) -> None:
        text = raw if raw is not None else json.dumps(body)
        queue = self._routes.setdefault((method, path), [])
        # A response that was already served only repeats until a new one is queued
        queue[:] = [r for r in queue if not r["served"]]
        queue.append(
            {"status": status, "text": text, "gate": gate, "exception": exception, "reason": reason, "served": False}
        )

    def calls_to(self, method: str, path: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["method"] == method and c["path"] == path]

    async def perform_call(self, url, method, headers, body=None) -> TransportResponse:
        path = url[len(BASE_URL):] if url.startswith(BASE_URL) else url
        self.calls.append(
            {
                "method": method,
                "path": path,
                "headers": dict(headers),
                "body": json.loads(body) if body else None,
                "at": self.clock() if self.clock else None,
            }
        )
        queue = self._routes.get((method, path))
        if not queue:
            return TransportResponse(status=404, text=json.dumps({"success": False, "error": "Not found"}))
        scripted = queue.pop(0) if len(queue) > 1 else queue[0]
        scripted["served"] = True
        if scripted["gate"] is not None:
            await scripted["gate"].wait()
        if scripted["exception"] is not None:
            raise scripted["exception"]
        return TransportResponse(status=scripted["status"], reason=scripted["reason"], text=scripted["text"])

    async def close(self) -> None:
        self.closed = True


def envelope(data: Any = None, **extra: Any) -> Dict[str, Any]:
    body = {"success": True, "data": data}
    body.update(extra)
    return body


def conversation_payload(conversation_id: str, title: str = "Chat", assistant_id: str = "asst_1") -> Dict[str, Any]:
    return {
        "id": conversation_id,
        "user_id": "user_1",
        "assistant_id": assistant_id,
        "title": title,
        "thread_id": f"thread_{conversation_id}",
        "created_at": "2024-05-01T10:00:00Z",
        "updated_at": "2024-05-01T10:05:00Z",
        "assistants": {"name": "Helper", "icon": "bot", "color_theme": "blue"},
    }


def message_payload(message_id: str, conversation_id: str, role: str = "user", content: str = "hi") -> Dict[str, Any]:
    return {
        "id": message_id,
        "conversation_id": conversation_id,
        "role": role,
        "content": content,
        "created_at": "2024-05-01T10:06:00Z",
    }


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def reset_test_config():
    yield
    clear_test_config()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_sleep(clock: FakeClock) -> FakeSleep:
    return FakeSleep(clock)


@pytest.fixture
def transport(clock: FakeClock) -> FakeTransport:
    return FakeTransport(clock)


@pytest.fixture
def token_source() -> StaticTokenSource:
    return StaticTokenSource("test-token")


@pytest.fixture
def events() -> List[Any]:
    return []


@pytest.fixture
def on_invalidated() -> MagicMock:
    return MagicMock()


@pytest.fixture
def client(transport, token_source, clock, fake_sleep, events, on_invalidated) -> ResilientClient:
    """ResilientClient wired to the fake transport, clock and sleep."""
    return ResilientClient(
        base_url=BASE_URL,
        transport=transport,
        token_source=token_source,
        cache=InMemoryResponseCache(ttl_seconds=60.0, clock=clock),
        rate_limiter=RateLimiter(min_interval=1.0, clock=clock, sleep=fake_sleep, event_listener=events.append),
        retry_policy=RetryPolicy(max_retries=3, base_delay=2.0, sleep=fake_sleep, event_listener=events.append),
        deduplicator=RequestDeduplicator(event_listener=events.append),
        on_session_invalidated=on_invalidated,
        event_listener=events.append,
    )


@pytest.fixture
def api_service(client: ResilientClient) -> ApiService:
    return ApiService(client)
