"""MCP server assembly using FastMCP.

Creates and configures the MCP server with:
    - Toolset registry population from the built-in catalog
    - Tool selection (enabled toolsets, read-only, dynamic discovery)
    - Tool registration with annotations and deferred-loading metadata
    - The token-organization prompt and the debug logs guide resource
    - Streamable HTTP / SSE apps wrapped in the HTTP middleware chain
"""

from __future__ import annotations

import inspect
from collections.abc import Sequence
from dataclasses import dataclass, field

import uvicorn
from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from buildkite_mcp import __version__
from buildkite_mcp.buildkite.client import BuildkiteClient
from buildkite_mcp.core.config import AppConfig, HTTPConfig
from buildkite_mcp.mcp import logger
from buildkite_mcp.mcp.guides import register_guides
from buildkite_mcp.mcp.middleware import (
    BearerAuthMiddleware,
    ClientIPMiddleware,
    RequestLogMiddleware,
)
from buildkite_mcp.toolsets.builtin import create_builtin_toolsets
from buildkite_mcp.toolsets.discovery import discovery_tools
from buildkite_mcp.toolsets.registry import ALL_TOOLSETS, ToolDescriptor, ToolsetRegistry

SERVER_NAME = "buildkite-mcp-server"

SERVER_INSTRUCTIONS = (
    "Tools for the Buildkite CI/CD platform: pipelines, builds, jobs, logs, "
    "artifacts, test results and clusters. When dynamic toolsets are enabled, "
    "use list_toolsets and search_tools to find tools before calling them."
)


@dataclass(frozen=True)
class ToolsetOptions:
    enabled_toolsets: Sequence[str] = field(default_factory=lambda: [ALL_TOOLSETS])
    read_only: bool = False
    dynamic_toolsets: bool = False

    @classmethod
    def from_config(cls, config: AppConfig) -> ToolsetOptions:
        return cls(
            enabled_toolsets=list(config.toolsets.enabled),
            read_only=config.toolsets.read_only,
            dynamic_toolsets=config.toolsets.dynamic,
        )


# ---------------------------------------------------------------------------
# Tool selection
# ---------------------------------------------------------------------------


def build_registry(client: BuildkiteClient) -> ToolsetRegistry:
    registry = ToolsetRegistry()
    registry.register_toolsets(create_builtin_toolsets(client))
    return registry


def build_server_tools(registry: ToolsetRegistry, options: ToolsetOptions) -> list[ToolDescriptor]:
    """Resolve the tools a server exposes for one configuration.

    In dynamic mode the discovery tools come first and every tool keeps its
    own defer_loading flag; otherwise no tool is deferred.
    """
    tools: list[ToolDescriptor] = []
    if options.dynamic_toolsets:
        tools.extend(discovery_tools(registry))
    tools.extend(registry.get_enabled_tools(options.enabled_toolsets, options.read_only))

    tools = [
        tool.with_defer_loading(tool.defer_loading if options.dynamic_toolsets else False)
        for tool in tools
    ]

    logger.info(
        "Registered tools: enabled_toolsets=%s read_only=%s dynamic_toolsets=%s "
        "tool_count=%d required_scopes=%s",
        list(options.enabled_toolsets),
        options.read_only,
        options.dynamic_toolsets,
        len(tools),
        registry.get_required_scopes(options.enabled_toolsets, options.read_only),
    )
    return tools


def tool_definition(tool: ToolDescriptor) -> dict[str, object]:
    """Client-facing definition of a tool, as advertised by tools/list."""
    definition: dict[str, object] = {
        "name": tool.name,
        "description": tool.description,
        "inputSchema": tool.input_schema(),
        "annotations": {"title": tool.title, "readOnlyHint": tool.read_only},
    }
    if tool.defer_loading:
        definition["_meta"] = {"defer_loading": True}
    return definition


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def register_tools(server: FastMCP, tools: Sequence[ToolDescriptor]) -> None:
    """Register resolved tools with the MCP server."""
    registered_count = 0

    for tool in tools:
        signature = inspect.signature(tool.handler)
        for param_name, param in signature.parameters.items():
            if param.annotation is inspect.Parameter.empty:
                raise RuntimeError(
                    f"MCP tool '{tool.name}' argument '{param_name}' is missing a type hint."
                )

        server.add_tool(
            tool.handler,
            name=tool.name,
            title=tool.title,
            description=tool.description,
            annotations=ToolAnnotations(title=tool.title, readOnlyHint=tool.read_only),
            meta={"defer_loading": True} if tool.defer_loading else None,
        )
        registered_count += 1

    logger.info("Registered %d MCP tools", registered_count)


async def health(request: Request) -> Response:
    return PlainTextResponse("OK")


def create_server(
    config: AppConfig,
    client: BuildkiteClient,
    registry: ToolsetRegistry | None = None,
) -> FastMCP:
    if registry is None:
        registry = build_registry(client)

    server = FastMCP(SERVER_NAME, instructions=SERVER_INSTRUCTIONS)
    server.custom_route("/health", methods=["GET"])(health)
    register_tools(server, build_server_tools(registry, ToolsetOptions.from_config(config)))
    register_guides(server)

    logger.info("Created %s v%s", SERVER_NAME, __version__)
    return server


# ---------------------------------------------------------------------------
# HTTP transport
# ---------------------------------------------------------------------------


def parse_listen_address(listen: str) -> tuple[str, int]:
    """Split "host:port"; an empty host means every interface."""
    host, sep, port = listen.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid listen address {listen!r}, expected host:port")
    return host.strip("[]") or "0.0.0.0", int(port)


def create_http_app(server: FastMCP, http_config: HTTPConfig) -> Starlette:
    app = server.sse_app() if http_config.use_sse else server.streamable_http_app()

    # add_middleware wraps, so the last one added runs first.
    if http_config.auth_token:
        app.add_middleware(BearerAuthMiddleware, token=http_config.auth_token)
    app.add_middleware(RequestLogMiddleware)
    app.add_middleware(ClientIPMiddleware, trust_proxy=http_config.trust_proxy)
    return app


def serve_http(server: FastMCP, http_config: HTTPConfig) -> None:
    host, port = parse_listen_address(http_config.listen)
    app = create_http_app(server, http_config)

    logger.info(
        "Starting %s server on %s (auth %s, trust_proxy=%s)",
        "SSE" if http_config.use_sse else "streamable HTTP",
        http_config.listen,
        "enabled" if http_config.auth_token else "disabled",
        http_config.trust_proxy,
    )
    uvicorn.run(app, host=host, port=port, log_config=None)


__all__ = [
    "SERVER_NAME",
    "ToolsetOptions",
    "build_registry",
    "build_server_tools",
    "create_http_app",
    "create_server",
    "parse_listen_address",
    "register_tools",
    "serve_http",
    "tool_definition",
]
