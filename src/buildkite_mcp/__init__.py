"""buildkite_mcp - MCP server exposing Buildkite pipelines, builds, logs and tests.

This package provides the `buildkite-mcp` command-line tool, the toolset
registry that decides which tools a session sees, and the dynamic tool
discovery tools used by clients to find tools at runtime.

Exports:
    __version__: Package version string.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.9.0"
