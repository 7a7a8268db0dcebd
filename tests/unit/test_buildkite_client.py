from __future__ import annotations

import httpx
import pytest

from buildkite_mcp.buildkite.client import BuildkiteClient
from buildkite_mcp.core.errors import APIError


def _client(handler: httpx.MockTransport, **kwargs: object) -> BuildkiteClient:
    return BuildkiteClient("secret", transport=handler, **kwargs)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_sends_auth_and_user_agent_headers() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    async with _client(
        httpx.MockTransport(handler), user_agent="buildkite-mcp-server/test", headers={"X-Extra": "1"}
    ) as client:
        assert await client.get("v2/user") == {"ok": True}

    [request] = seen
    assert request.url == "https://api.buildkite.com/v2/user"
    assert request.headers["authorization"] == "Bearer secret"
    assert request.headers["user-agent"] == "buildkite-mcp-server/test"
    assert request.headers["x-extra"] == "1"


@pytest.mark.asyncio
async def test_omits_authorization_without_token() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={})

    async with BuildkiteClient(None, transport=httpx.MockTransport(handler)) as client:
        await client.get("v2/user")

    assert "authorization" not in seen[0].headers


@pytest.mark.asyncio
async def test_drops_none_params() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    async with _client(httpx.MockTransport(handler)) as client:
        await client.get("/v2/builds", params={"branch": "main", "state": None, "page": 2})

    assert dict(seen[0].url.params) == {"branch": "main", "page": "2"}
    assert seen[0].url.path == "/v2/builds"


@pytest.mark.asyncio
async def test_error_response_raises_api_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"message": "Forbidden for this token"})

    async with _client(httpx.MockTransport(handler)) as client:
        with pytest.raises(APIError) as excinfo:
            await client.get("v2/user")

    assert excinfo.value.status_code == 403
    assert excinfo.value.message == "Forbidden for this token"
    assert "Forbidden for this token" in excinfo.value.body


@pytest.mark.asyncio
async def test_error_without_json_uses_status_line() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    async with _client(httpx.MockTransport(handler)) as client:
        with pytest.raises(APIError) as excinfo:
            await client.post("v2/builds", json={})

    assert excinfo.value.message == "502 Bad Gateway"
    assert excinfo.value.body == "bad gateway"


@pytest.mark.asyncio
async def test_download_returns_bytes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"\x00\x01")

    async with _client(httpx.MockTransport(handler)) as client:
        assert await client.download("https://api.buildkite.com/v2/a/download") == b"\x00\x01"
