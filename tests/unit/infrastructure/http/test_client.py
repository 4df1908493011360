import asyncio

import pytest

from chatlink.domain.events.api_events import ApiCallFailed, CacheHit, SessionInvalidated
from chatlink.domain.models.result import ErrorKind, Failure, Success
from chatlink.infrastructure.auth.token_source import StaticTokenSource
from chatlink.infrastructure.http.client import ResilientClient
from chatlink.infrastructure.http.errors import (
    CONNECTIVITY_MESSAGE,
    NOT_AUTHENTICATED_MESSAGE,
    SESSION_EXPIRED_MESSAGE,
    ConnectivityError,
)

from conftest import FakeClock, FakeSleep, FakeTransport, envelope


@pytest.mark.asyncio
async def test_get_returns_envelope_data(client: ResilientClient, transport: FakeTransport):
    transport.add("GET", "/assistants", envelope([{"id": "a1"}]))

    result = await client.get("/assistants")

    assert result == Success(data=[{"id": "a1"}])
    call = transport.calls[0]
    assert call["headers"]["Authorization"] == "Bearer test-token"
    assert call["headers"]["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_successful_read_is_cached_until_ttl(client: ResilientClient, transport: FakeTransport, clock: FakeClock, events):
    transport.add("GET", "/assistants", envelope(["first"]))
    transport.add("GET", "/assistants", envelope(["second"]))

    assert (await client.get("/assistants")).data == ["first"]
    clock.advance(59.9)
    assert (await client.get("/assistants")).data == ["first"]
    assert len(transport.calls) == 1
    assert any(isinstance(e, CacheHit) for e in events)

    clock.advance(0.2)
    assert (await client.get("/assistants")).data == ["second"]
    assert len(transport.calls) == 2


@pytest.mark.asyncio
async def test_skip_cache_forces_network_call(client: ResilientClient, transport: FakeTransport):
    transport.add("GET", "/assistants", envelope(["first"]))
    transport.add("GET", "/assistants", envelope(["second"]))

    await client.get("/assistants")
    result = await client.get("/assistants", skip_cache=True)

    assert result.data == ["second"]
    assert len(transport.calls) == 2


@pytest.mark.asyncio
async def test_writes_are_not_cached(client: ResilientClient, transport: FakeTransport):
    transport.add("POST", "/subscriptions", envelope({"id": "s1"}))

    await client.post("/subscriptions", {"assistantId": "a1", "plan": "monthly"})
    await client.post("/subscriptions", {"assistantId": "a1", "plan": "monthly"})

    assert len(transport.calls) == 2
    assert len(client.cache) == 0


@pytest.mark.asyncio
async def test_concurrent_identical_reads_make_one_call(client: ResilientClient, transport: FakeTransport):
    gate = asyncio.Event()
    transport.add("GET", "/chat/conversations", envelope([]), gate=gate)

    tasks = [asyncio.ensure_future(client.get("/chat/conversations")) for _ in range(4)]
    await asyncio.sleep(0.01)
    gate.set()
    results = await asyncio.gather(*tasks)

    assert len(transport.calls) == 1
    assert all(r == Success(data=[]) for r in results)


@pytest.mark.asyncio
async def test_missing_token_with_required_auth_fails_without_network(transport: FakeTransport, on_invalidated):
    client = ResilientClient("http://api.test/api", transport, StaticTokenSource(None), on_session_invalidated=on_invalidated)

    result = await client.get("/subscriptions")

    assert isinstance(result, Failure)
    assert result.kind == ErrorKind.AUTHENTICATION
    assert result.error == NOT_AUTHENTICATED_MESSAGE
    assert transport.calls == []
    on_invalidated.assert_not_called()


@pytest.mark.asyncio
async def test_optional_auth_proceeds_without_token(transport: FakeTransport):
    client = ResilientClient("http://api.test/api", transport, StaticTokenSource(None))
    transport.add("GET", "/assistants", envelope([]))

    result = await client.get("/assistants", require_auth=False)

    assert result.success
    assert "Authorization" not in transport.calls[0]["headers"]


@pytest.mark.asyncio
async def test_unauthorized_invalidates_session(client: ResilientClient, transport: FakeTransport, on_invalidated, events):
    transport.add("GET", "/auth/profile", {"success": False, "error": "Invalid token"}, status=401)

    result = await client.get("/auth/profile")

    assert result.kind == ErrorKind.AUTHENTICATION
    assert result.status == 401
    assert result.error == SESSION_EXPIRED_MESSAGE
    on_invalidated.assert_called_once()
    assert any(isinstance(e, SessionInvalidated) for e in events)
    assert len(transport.calls) == 1


@pytest.mark.asyncio
async def test_server_error_uses_body_message(client: ResilientClient, transport: FakeTransport, events):
    transport.add("POST", "/chat/conversations", {"success": False, "message": "Title too long"}, status=400)

    result = await client.post("/chat/conversations", {"assistant_id": "a1"})

    assert result == Failure(
        error="Title too long",
        kind=ErrorKind.VALIDATION_OR_SERVER,
        status=400,
        payload={"success": False, "message": "Title too long"},
    )
    assert len(transport.calls) == 1
    assert any(isinstance(e, ApiCallFailed) for e in events)


@pytest.mark.asyncio
async def test_server_error_without_body_uses_status_line(client: ResilientClient, transport: FakeTransport):
    transport.add("GET", "/health", raw="<html>oops</html>", status=502, reason="Bad Gateway")

    result = await client.get("/health")

    assert result.error == "Error 502: Bad Gateway"
    assert result.kind == ErrorKind.VALIDATION_OR_SERVER


@pytest.mark.asyncio
async def test_success_false_envelope_is_failure(client: ResilientClient, transport: FakeTransport):
    transport.add("GET", "/assistants/user", {"success": False, "error": "Nope"})

    result = await client.get("/assistants/user")

    assert not result.success
    assert result.error == "Nope"
    assert len(client.cache) == 0


@pytest.mark.asyncio
async def test_subscription_error_is_domain_failure_with_payload(client: ResilientClient, transport: FakeTransport):
    body = {
        "success": False,
        "error_code": "SUBSCRIPTION_EXPIRED",
        "message": "Your subscription expired",
        "assistant_id": "a1",
        "days_expired": 3,
    }
    transport.add("POST", "/chat/conversations/c1/messages", body, status=403)

    result = await client.post("/chat/conversations/c1/messages", {"message": "hi"})

    assert result.kind == ErrorKind.DOMAIN
    assert result.error_code == "SUBSCRIPTION_EXPIRED"
    assert result.payload["days_expired"] == 3


@pytest.mark.asyncio
async def test_transport_fault_is_connectivity_failure(client: ResilientClient, transport: FakeTransport):
    transport.add("GET", "/health", exception=ConnectivityError())

    result = await client.get("/health")

    assert result.kind == ErrorKind.CONNECTIVITY
    assert result.error == CONNECTIVITY_MESSAGE
    assert len(transport.calls) == 1


@pytest.mark.asyncio
async def test_non_json_success_body_is_connectivity_failure(client: ResilientClient, transport: FakeTransport):
    transport.add("GET", "/health", raw="OK", status=200)

    result = await client.get("/health")

    assert result.kind == ErrorKind.CONNECTIVITY


@pytest.mark.asyncio
async def test_rate_limited_call_is_retried(client: ResilientClient, transport: FakeTransport, fake_sleep: FakeSleep):
    transport.add("GET", "/packages/user", {"success": False, "error": "Too many"}, status=429)
    transport.add("GET", "/packages/user", envelope(["p1"]))

    result = await client.get("/packages/user")

    assert result == Success(data=["p1"])
    assert len(transport.calls) == 2
    assert 2.0 in fake_sleep.delays


@pytest.mark.asyncio
async def test_persistent_rate_limit_gives_up(client: ResilientClient, transport: FakeTransport, fake_sleep: FakeSleep):
    transport.add("GET", "/packages/user", {"success": False, "error": "Too many"}, status=429)

    result = await client.get("/packages/user")

    assert result.kind == ErrorKind.RATE_LIMITED
    assert len(transport.calls) == 4
    assert client.retry_policy.attempts_for("GET:/packages/user") == 0


@pytest.mark.asyncio
async def test_unexpected_error_is_normalized(client: ResilientClient, transport: FakeTransport):
    transport.add("GET", "/health", exception=RuntimeError("bug"))

    result = await client.get("/health")

    assert result.kind == ErrorKind.UNEXPECTED


@pytest.mark.asyncio
async def test_invalidate_endpoint_drops_cached_reads(client: ResilientClient, transport: FakeTransport):
    transport.add("GET", "/chat/conversations", envelope([]))
    await client.get("/chat/conversations")

    assert client.invalidate_endpoint("/chat/conversations") == 1
    await client.get("/chat/conversations")
    assert len(transport.calls) == 2


@pytest.mark.asyncio
async def test_request_body_is_serialized(client: ResilientClient, transport: FakeTransport):
    transport.add("POST", "/packages", envelope({}))

    await client.post("/packages", {"plan": "yearly", "assistantIds": ["a1", "a2"]})

    assert transport.calls[0]["body"] == {"assistantIds": ["a1", "a2"], "plan": "yearly"}
