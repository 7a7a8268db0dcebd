from __future__ import annotations

import os
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console
from typer.testing import CliRunner

# Detect CI environment (GitHub Actions sets CI=true)
IS_CI = os.environ.get("CI", "").lower() == "true"


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip local_only tests when running in CI."""
    if not IS_CI:
        return
    skip_ci = pytest.mark.skip(reason="Skipped in CI (requires local environment)")
    for item in items:
        if "local_only" in item.keywords:
            item.add_marker(skip_ci)


ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from buildkite_mcp.toolsets.registry import (  # noqa: E402
    ToolDescriptor,
    Toolset,
    ToolsetRegistry,
)

# Variables the CLI reads; cleared so the developer's shell cannot leak in.
CLI_ENV_VARS = (
    "BUILDKITE_API_TOKEN",
    "BUILDKITE_API_TOKEN_FROM_1PASSWORD",
    "BUILDKITE_BASE_URL",
    "BUILDKITE_HTTP_HEADERS",
    "BUILDKITE_TOOLSETS",
    "BUILDKITE_READ_ONLY",
    "BUILDKITE_DYNAMIC_TOOLSETS",
    "BUILDKITE_MCP_AUTH_TOKEN",
    "BUILDKITE_TRUST_PROXY",
    "HTTP_LISTEN_ADDR",
    "OTEL_EXPORTER_OTLP_PROTOCOL",
    "DEBUG",
)


async def noop_handler() -> str:
    return "{}"


def make_tool(
    name: str,
    description: str = "",
    *,
    read_only: bool | None = True,
    scopes: tuple[str, ...] = (),
    defer_loading: bool = False,
) -> ToolDescriptor:
    return ToolDescriptor(
        name=name,
        description=description or f"{name} tool",
        handler=noop_handler,
        read_only=read_only,
        required_scopes=scopes,
        defer_loading=defer_loading,
    )


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def tool_factory() -> Callable[..., ToolDescriptor]:
    return make_tool


@pytest.fixture(autouse=True)
def isolate_config(tmp_path: Path, monkeypatch: Any) -> Path:
    """Point config to a temp path so tests don't touch user state."""
    cfg_path = tmp_path / "config.toml"
    monkeypatch.setenv("BUILDKITE_MCP_CONFIG", str(cfg_path))
    for var in CLI_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    for var in list(os.environ):
        if var.startswith("BUILDKITE_MCP_") and var != "BUILDKITE_MCP_CONFIG":
            monkeypatch.delenv(var, raising=False)
    return cfg_path


@pytest.fixture(autouse=True)
def capture_console(monkeypatch: Any) -> Console:
    """Use an in-memory Rich console during tests."""
    test_console = Console(record=True, width=200)
    import buildkite_mcp.core.console as core_console
    import buildkite_mcp.main as bk_main

    monkeypatch.setattr(core_console, "console", test_console)
    monkeypatch.setattr(bk_main, "console", test_console)
    monkeypatch.setattr(bk_main, "stderr_console", test_console)
    return test_console


@pytest.fixture
def sample_registry() -> ToolsetRegistry:
    """builds = {list_builds (read-only), create_build (write)}, artifacts = {get_artifact}."""
    registry = ToolsetRegistry()
    registry.register_toolsets(
        {
            "builds": Toolset(
                name="Builds",
                description="Build operations",
                tools=(
                    make_tool("list_builds", "List recent runs of a pipeline", read_only=True),
                    make_tool(
                        "create_build",
                        "Trigger a new run of a pipeline",
                        read_only=False,
                        scopes=("write_builds",),
                    ),
                ),
            ),
            "artifacts": Toolset(
                name="Artifacts",
                description="Artifact operations",
                tools=(
                    make_tool(
                        "get_artifact",
                        "Fetch an uploaded file",
                        read_only=True,
                        scopes=("read_artifacts",),
                    ),
                ),
            ),
        }
    )
    return registry
