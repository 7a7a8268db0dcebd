"""HTTP middleware for the streamable HTTP and SSE transports.

Middleware chain, outermost first:
    - ClientIPMiddleware: resolves the client address into request.state
    - RequestLogMiddleware: one log line per request
    - BearerAuthMiddleware: optional shared-token authentication
"""

from __future__ import annotations

import hmac
from time import perf_counter

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp

from buildkite_mcp.core.console import get_logger

logger = get_logger("http")

# Checked in priority order when proxy headers are trusted.
PROXY_HEADERS = (
    "cf-connecting-ip",
    "true-client-ip",
    "x-real-ip",
    "x-forwarded-for",
    "x-client-ip",
)

UNAUTHENTICATED_PATHS = frozenset({"/health"})


def _remote_addr(request: Request) -> str:
    if request.client is None:
        return ""
    return f"{request.client.host}:{request.client.port}"


def resolve_client_ip(request: Request, trust_proxy: bool) -> str:
    """Return the client address, honoring proxy headers only when trusted.

    Proxy headers are trivially spoofed, so they are ignored unless the server
    sits behind a reverse proxy that sets them.
    """
    if not trust_proxy:
        return _remote_addr(request)

    for header in PROXY_HEADERS:
        value = request.headers.get(header)
        if not value:
            continue
        if header == "x-forwarded-for":
            # client, proxy1, proxy2
            first = value.split(",")[0].strip()
            if first:
                return first
            continue
        return value

    return _remote_addr(request)


def client_ip(request: Request) -> str:
    return getattr(request.state, "client_ip", "")


class ClientIPMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, trust_proxy: bool = False) -> None:
        super().__init__(app)
        self.trust_proxy = trust_proxy

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.client_ip = resolve_client_ip(request, self.trust_proxy)
        return await call_next(request)


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = perf_counter()
        response = await call_next(request)
        logger.info(
            "HTTP request method=%s path=%s status=%d duration_ms=%.1f client_ip=%s user_agent=%s",
            request.method,
            request.url.path,
            response.status_code,
            (perf_counter() - start) * 1000,
            client_ip(request),
            request.headers.get("user-agent", ""),
        )
        return response


class BearerAuthMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, token: str) -> None:
        super().__init__(app)
        self._token = token.encode("utf-8")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in UNAUTHENTICATED_PATHS:
            return await call_next(request)

        header = request.headers.get("authorization", "")
        if not header.startswith("Bearer "):
            return self._reject(request)

        presented = header.removeprefix("Bearer ").encode("utf-8")
        if not hmac.compare_digest(presented, self._token):
            return self._reject(request)

        return await call_next(request)

    def _reject(self, request: Request) -> Response:
        logger.warning(
            "Unauthorized access attempt to MCP HTTP server client_ip=%s", client_ip(request)
        )
        return PlainTextResponse("Unauthorized", status_code=401)


__all__ = [
    "BearerAuthMiddleware",
    "ClientIPMiddleware",
    "RequestLogMiddleware",
    "client_ip",
    "resolve_client_ip",
]
