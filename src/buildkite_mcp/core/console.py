"""Rich consoles and logging for the CLI and the server.

`console` prints command output (tables, versions). Everything else, logs and
error messages included, goes to `stderr_console`, because stdout carries the
MCP stdio transport.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

console = Console()
stderr_console = Console(stderr=True)


def _normalize_level(level: str | int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return int(level)


def setup_logging(level: str | int = logging.INFO, verbose: bool = False) -> logging.Logger:
    """Configure logging with a Rich handler and return the app logger."""
    numeric_level = logging.DEBUG if verbose else _normalize_level(level)

    handler = RichHandler(
        console=stderr_console,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(numeric_level)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(numeric_level)
    root.addHandler(handler)

    logger = logging.getLogger("buildkite_mcp")
    logger.setLevel(numeric_level)

    # httpx logs every API request at INFO.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    if name and not name.startswith("buildkite_mcp"):
        name = f"buildkite_mcp.{name}"
    return logging.getLogger(name or "buildkite_mcp")
