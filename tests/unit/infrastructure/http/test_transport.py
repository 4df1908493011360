import json

import httpx
import pytest

from chatlink.infrastructure.http.errors import ConnectivityError
from chatlink.infrastructure.http.transport import HttpxTransport


@pytest.mark.asyncio
async def test_perform_call_sends_request_and_wraps_response():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"success": True, "data": {"id": "c1"}})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    transport = HttpxTransport(client=client)

    response = await transport.perform_call(
        "http://api.test/api/chat/conversations",
        "POST",
        {"Authorization": "Bearer t", "Content-Type": "application/json"},
        '{"assistant_id":"a1"}',
    )

    assert response.status == 201
    assert response.ok
    assert response.json() == {"success": True, "data": {"id": "c1"}}
    assert seen == {
        "method": "POST",
        "url": "http://api.test/api/chat/conversations",
        "auth": "Bearer t",
        "body": {"assistant_id": "a1"},
    }
    await client.aclose()


@pytest.mark.asyncio
async def test_network_error_becomes_connectivity_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    transport = HttpxTransport(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(ConnectivityError):
        await transport.perform_call("http://api.test/api/health", "GET", {})


@pytest.mark.asyncio
async def test_close_leaves_injected_client_open():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    transport = HttpxTransport(client=client)

    await transport.close()

    assert not client.is_closed
    await client.aclose()
