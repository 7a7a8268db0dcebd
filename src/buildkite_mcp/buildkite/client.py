"""Async Buildkite REST API client.

Thin wrapper around httpx.AsyncClient that:
    - authenticates with a bearer token
    - sends the configured user agent and extra headers
    - turns non-success responses into APIError
    - records one span per request when tracing is configured
"""

from __future__ import annotations

from typing import Any

import httpx

from buildkite_mcp.core.config import DEFAULT_BASE_URL
from buildkite_mcp.core.console import get_logger
from buildkite_mcp.core.errors import APIError
from buildkite_mcp.core.tracing import start_span

logger = get_logger(__name__)


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("message"), str):
        return payload["message"]
    return f"{response.status_code} {response.reason_phrase}".strip()


class BuildkiteClient:
    """One call per Buildkite API resource; tools own the request shapes."""

    def __init__(
        self,
        token: str | None,
        base_url: str = DEFAULT_BASE_URL,
        *,
        headers: dict[str, str] | None = None,
        user_agent: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        request_headers = {"Accept": "application/json", **(headers or {})}
        if user_agent:
            request_headers["User-Agent"] = user_agent
        if token:
            request_headers["Authorization"] = f"Bearer {token}"

        self.base_url = base_url
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=request_headers,
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    async def __aenter__(self) -> BuildkiteClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        logger.debug("%s %s params=%s", method, path, clean_params)

        with start_span(
            f"buildkite.api {method}", {"http.request.method": method, "url.path": path}
        ) as span:
            response = await self._client.request(
                method, path.lstrip("/"), params=clean_params or None, json=json
            )
            if span is not None:
                span.set_attribute("http.response.status_code", response.status_code)
            if response.is_error:
                raise APIError(
                    _error_message(response),
                    status_code=response.status_code,
                    body=response.text,
                )
        return response

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self.request("GET", path, params=params)
        return response.json()

    async def post(self, path: str, json: Any = None) -> Any:
        response = await self.request("POST", path, json=json)
        return response.json()

    async def patch(self, path: str, json: Any = None) -> Any:
        response = await self.request("PATCH", path, json=json)
        return response.json()

    async def put(self, path: str, json: Any = None) -> Any:
        response = await self.request("PUT", path, json=json)
        return response.json()

    async def download(self, url: str) -> bytes:
        """Fetch raw bytes from an absolute or API-relative URL."""
        response = await self.request("GET", url)
        return response.content


__all__ = ["BuildkiteClient"]
