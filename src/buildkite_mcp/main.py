from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path

import typer
from rich import box
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .buildkite.client import BuildkiteClient
from .core.config import AppConfig, ConfigLoadResult, load_config
from .core.console import console, setup_logging, stderr_console
from .core.credentials import parse_headers, resolve_api_token, user_agent
from .core.errors import ConfigError
from .core.tracing import configure_tracing, shutdown_tracing
from .mcp.server import (
    ToolsetOptions,
    build_registry,
    build_server_tools,
    create_server,
    serve_http,
    tool_definition,
)
from .toolsets.builtin import validate_toolsets

app = typer.Typer(help="buildkite-mcp: a Model Context Protocol server for Buildkite.")
logger = logging.getLogger(__name__)


@dataclass
class AppState:
    config: AppConfig
    config_meta: ConfigLoadResult
    logger: logging.Logger


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Path to a config file (TOML or JSON)."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", envvar="DEBUG", help="Enable debug logging."
    ),
    otel_exporter: str | None = typer.Option(
        None,
        "--otel-exporter",
        envvar="OTEL_EXPORTER_OTLP_PROTOCOL",
        help="OpenTelemetry exporter to enable: 'http/protobuf', 'grpc' or 'noop'.",
    ),
) -> None:
    loaded_config, meta = load_config(config_path=config)
    loaded_config = loaded_config.with_overrides("tracing", exporter=otel_exporter)
    app_logger = setup_logging(level=loaded_config.log_level, verbose=verbose)

    ctx.obj = AppState(config=loaded_config, config_meta=meta, logger=app_logger)

    if meta.error:
        stderr_console.print(
            Panel(
                f"[bold red]Configuration Error - Safe Mode Active[/bold red]\n\n"
                f"Failed to load {meta.path}:\n{meta.error}\n\n"
                f"[yellow]Using default settings.[/yellow]",
                border_style="red",
            )
        )
    else:
        app_logger.debug(
            "Loaded configuration from %s (env overrides: %s)",
            meta.path,
            sorted(meta.env_overrides),
        )


# -----------------------------------------------------------------------------
# Shared options
# -----------------------------------------------------------------------------

TOOLSETS_OPTION = typer.Option(
    None,
    "--enabled-toolsets",
    envvar="BUILDKITE_TOOLSETS",
    help="Comma-separated list of toolsets to enable (e.g. 'pipelines,builds,clusters'). "
    "Use 'all' to enable all toolsets.",
)
READ_ONLY_OPTION = typer.Option(
    None,
    "--read-only/--no-read-only",
    envvar="BUILDKITE_READ_ONLY",
    help="Filter out write operations from all toolsets.",
)
DYNAMIC_OPTION = typer.Option(
    None,
    "--dynamic-toolsets/--no-dynamic-toolsets",
    envvar="BUILDKITE_DYNAMIC_TOOLSETS",
    help="Expose list_toolsets and search_tools and defer loading of other tools.",
)
API_TOKEN_OPTION = typer.Option(
    None, "--api-token", envvar="BUILDKITE_API_TOKEN", help="The Buildkite API token to use."
)
API_TOKEN_1P_OPTION = typer.Option(
    None,
    "--api-token-from-1password",
    envvar="BUILDKITE_API_TOKEN_FROM_1PASSWORD",
    help="The 1Password item to read the API token from, e.g. 'op://vault/item/field'.",
)
BASE_URL_OPTION = typer.Option(
    None, "--base-url", envvar="BUILDKITE_BASE_URL", help="Base URL of the Buildkite API."
)
HTTP_HEADER_OPTION = typer.Option(
    None,
    "--http-header",
    envvar="BUILDKITE_HTTP_HEADERS",
    help="Additional HTTP header sent with every request, as 'Key: Value'. Repeatable.",
)


def _split_toolsets(raw: str | None) -> list[str] | None:
    if raw is None:
        return None
    return [name.strip() for name in raw.split(",") if name.strip()]


def _apply_toolset_options(
    config: AppConfig,
    enabled_toolsets: str | None,
    read_only: bool | None,
    dynamic_toolsets: bool | None,
) -> AppConfig:
    return config.with_overrides(
        "toolsets",
        enabled=_split_toolsets(enabled_toolsets),
        read_only=read_only,
        dynamic=dynamic_toolsets,
    )


def _validate_or_exit(config: AppConfig) -> None:
    try:
        validate_toolsets(config.toolsets.enabled)
    except ConfigError as exc:
        stderr_console.print(f"[red]{exc.message}[/red]")
        raise typer.Exit(code=1) from exc


def _create_client(config: AppConfig) -> BuildkiteClient:
    try:
        token = resolve_api_token(config.api.token, config.api.token_from_1password)
    except ConfigError as exc:
        stderr_console.print(f"[red]{exc.message}[/red]")
        raise typer.Exit(code=1) from exc

    return BuildkiteClient(
        token,
        config.api.base_url,
        headers=parse_headers(config.api.http_headers),
        user_agent=user_agent(__version__),
        timeout=config.api.timeout,
    )


def _start_tracing(config: AppConfig) -> None:
    try:
        configure_tracing(config.tracing.exporter, config.tracing.service_name, __version__)
    except ConfigError as exc:
        stderr_console.print(f"[red]{exc.message}[/red]")
        raise typer.Exit(code=1) from exc


def _prepare_server_config(
    state: AppState,
    *,
    api_token: str | None,
    api_token_from_1password: str | None,
    base_url: str | None,
    http_headers: list[str] | None,
    enabled_toolsets: str | None,
    read_only: bool | None,
    dynamic_toolsets: bool | None,
) -> AppConfig:
    config = _apply_toolset_options(state.config, enabled_toolsets, read_only, dynamic_toolsets)
    _validate_or_exit(config)
    return config.with_overrides(
        "api",
        token=api_token,
        token_from_1password=api_token_from_1password,
        base_url=base_url,
        http_headers=http_headers or None,
    )


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------


@app.command("stdio")
def serve_stdio(
    ctx: typer.Context,
    api_token: str | None = API_TOKEN_OPTION,
    api_token_from_1password: str | None = API_TOKEN_1P_OPTION,
    base_url: str | None = BASE_URL_OPTION,
    http_header: list[str] | None = HTTP_HEADER_OPTION,
    enabled_toolsets: str | None = TOOLSETS_OPTION,
    read_only: bool | None = READ_ONLY_OPTION,
    dynamic_toolsets: bool | None = DYNAMIC_OPTION,
) -> None:
    """Serve the MCP server over stdio."""
    state: AppState = ctx.obj
    config = _prepare_server_config(
        state,
        api_token=api_token,
        api_token_from_1password=api_token_from_1password,
        base_url=base_url,
        http_headers=http_header,
        enabled_toolsets=enabled_toolsets,
        read_only=read_only,
        dynamic_toolsets=dynamic_toolsets,
    )
    client = _create_client(config)
    server = create_server(config, client)
    _start_tracing(config)

    # The client lives as long as the process.
    state.logger.info("Starting MCP server over stdio")
    try:
        server.run(transport="stdio")
    finally:
        shutdown_tracing()


@app.command("http")
def serve_http_command(
    ctx: typer.Context,
    api_token: str | None = API_TOKEN_OPTION,
    api_token_from_1password: str | None = API_TOKEN_1P_OPTION,
    base_url: str | None = BASE_URL_OPTION,
    http_header: list[str] | None = HTTP_HEADER_OPTION,
    enabled_toolsets: str | None = TOOLSETS_OPTION,
    read_only: bool | None = READ_ONLY_OPTION,
    dynamic_toolsets: bool | None = DYNAMIC_OPTION,
    listen: str | None = typer.Option(
        None, "--listen", envvar="HTTP_LISTEN_ADDR", help="The address to listen on."
    ),
    use_sse: bool | None = typer.Option(
        None,
        "--use-sse/--no-use-sse",
        help="Use the deprecated SSE transport instead of streamable HTTP.",
    ),
    auth_token: str | None = typer.Option(
        None,
        "--auth-token",
        envvar="BUILDKITE_MCP_AUTH_TOKEN",
        help="Bearer token HTTP clients must present.",
    ),
    trust_proxy: bool | None = typer.Option(
        None,
        "--trust-proxy/--no-trust-proxy",
        envvar="BUILDKITE_TRUST_PROXY",
        help="Trust X-Forwarded-For and other proxy headers for client IP logging. "
        "Only enable behind a trusted reverse proxy.",
    ),
) -> None:
    """Serve the MCP server over streamable HTTP or SSE."""
    state: AppState = ctx.obj
    config = _prepare_server_config(
        state,
        api_token=api_token,
        api_token_from_1password=api_token_from_1password,
        base_url=base_url,
        http_headers=http_header,
        enabled_toolsets=enabled_toolsets,
        read_only=read_only,
        dynamic_toolsets=dynamic_toolsets,
    ).with_overrides(
        "http", listen=listen, use_sse=use_sse, auth_token=auth_token, trust_proxy=trust_proxy
    )
    client = _create_client(config)
    server = create_server(config, client)
    _start_tracing(config)

    try:
        serve_http(server, config.http)
    except ValueError as exc:
        stderr_console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    finally:
        shutdown_tracing()


@app.command("tools")
def list_tools(
    ctx: typer.Context,
    enabled_toolsets: str | None = TOOLSETS_OPTION,
    read_only: bool | None = READ_ONLY_OPTION,
    dynamic_toolsets: bool | None = DYNAMIC_OPTION,
) -> None:
    """Print the JSON definition of every tool for the configuration."""
    state: AppState = ctx.obj
    config = _apply_toolset_options(state.config, enabled_toolsets, read_only, dynamic_toolsets)
    _validate_or_exit(config)

    # Listing never calls the API, so no token is needed.
    client = BuildkiteClient(None, config.api.base_url)
    try:
        tools = build_server_tools(build_registry(client), ToolsetOptions.from_config(config))
    finally:
        asyncio.run(client.aclose())

    for tool in tools:
        typer.echo(json.dumps(tool_definition(tool)))


@app.command("toolsets")
def show_toolsets(
    ctx: typer.Context,
    read_only: bool | None = READ_ONLY_OPTION,
) -> None:
    """Display the built-in toolsets and the API token scopes they need."""
    state: AppState = ctx.obj
    client = BuildkiteClient(None, state.config.api.base_url)
    try:
        registry = build_registry(client)
    finally:
        asyncio.run(client.aclose())

    only_read = state.config.toolsets.read_only if read_only is None else read_only
    table = Table(title="Toolsets", box=box.SIMPLE_HEAVY, expand=True)
    table.add_column("Toolset", style="cyan", no_wrap=True)
    table.add_column("Description", style="white")
    table.add_column("Tools", justify="right")
    table.add_column("Read-only", justify="right")
    table.add_column("Scopes", style="green")

    for meta in registry.get_metadata():
        scopes = registry.get_required_scopes([meta.name], only_read)
        table.add_row(
            meta.name,
            meta.description,
            str(meta.tool_count),
            str(meta.read_only_count),
            ", ".join(scopes) or "-",
        )

    console.print(table)


@app.command("config")
def show_config(ctx: typer.Context) -> None:
    """Show the active configuration and where it came from."""
    state: AppState = ctx.obj
    meta = state.config_meta

    table = Table(title="Config", box=box.SIMPLE, expand=True)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")

    secrets = {"token", "auth_token"}
    for section, values in state.config.model_dump().items():
        if not isinstance(values, dict):
            table.add_row(section, str(values))
            continue
        for key, value in values.items():
            shown = "********" if key in secrets and value else str(value)
            table.add_row(f"{section}.{key}", shown)

    console.print(table)

    meta_lines = [
        f"Path: {meta.path}",
        "File loaded: yes" if meta.file_loaded else "File loaded: no (using defaults + env)",
    ]
    if meta.env_overrides:
        meta_lines.append("Env overrides: " + ", ".join(sorted(meta.env_overrides)))

    console.print(Panel("\n".join(meta_lines), title="Config source", box=box.SIMPLE))


@app.command("version")
def show_version() -> None:
    """Print the buildkite-mcp version."""
    console.print(__version__)


def cli() -> None:
    app()


if __name__ == "__main__":
    cli()
