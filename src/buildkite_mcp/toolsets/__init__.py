"""Toolsets package - registry, search and discovery tools.

This package decides which tools a client session can see:
    - registry: ToolDescriptor, Toolset, ToolsetRegistry and search
    - discovery: the list_toolsets and search_tools tools
    - builtin: the Buildkite toolset catalog and startup validation
"""

from __future__ import annotations

from buildkite_mcp.toolsets.registry import (
    ALL_TOOLSETS,
    SearchResult,
    ToolDescriptor,
    Toolset,
    ToolsetMetadata,
    ToolsetRegistry,
)

__all__ = [
    "ALL_TOOLSETS",
    "SearchResult",
    "ToolDescriptor",
    "Toolset",
    "ToolsetMetadata",
    "ToolsetRegistry",
]
