"""Toolset registry and tool search.

This module is the single source of truth for:
- Tool descriptors (immutable metadata + handler reference)
- Toolsets (named groups of related tools)
- Resolving enabled toolsets and read-only mode into a tool list
- The required-scope footprint of a configuration
- Keyword search across every registered tool

The registry is populated once at server startup and only read afterwards.
No field is mutated after population, so any number of sessions may query it
concurrently without locking. Late registration while serving would need a
lock or a copy-on-write swap of the toolset map.

Usage:
    from buildkite_mcp.toolsets.registry import ToolsetRegistry

    registry = ToolsetRegistry()
    registry.register_toolsets(create_builtin_toolsets(client))

    tools = registry.get_enabled_tools(["builds", "logs"], read_only=True)
    hits = registry.search_tools_with_metadata("artifact", limit=10)
"""

from __future__ import annotations

import dataclasses
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from mcp.server.fastmcp.tools import Tool as FastMCPTool
from pydantic import BaseModel

from buildkite_mcp.core.errors import DuplicateToolError

# Special toolset name that enables every registered toolset
ALL_TOOLSETS = "all"

ToolHandler = Callable[..., Awaitable[str]]
MatchedIn = Literal["name", "description", "both"]


# ---------------------------------------------------------------------------
# Tool Descriptor
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ToolDescriptor:
    """Metadata and handler for one callable tool.

    Descriptors are immutable; use with_defer_loading() to derive a variant.
    """

    name: str
    description: str
    handler: ToolHandler = field(repr=False, compare=False)
    read_only: bool | None = None
    required_scopes: tuple[str, ...] = ()
    defer_loading: bool = False
    title: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.required_scopes, tuple):
            object.__setattr__(self, "required_scopes", tuple(self.required_scopes))

    @property
    def is_read_only(self) -> bool:
        """Absent or false annotations mean the tool mutates state."""
        return bool(self.read_only)

    def with_defer_loading(self, defer_loading: bool) -> ToolDescriptor:
        if defer_loading == self.defer_loading:
            return self
        return dataclasses.replace(self, defer_loading=defer_loading)

    def input_schema(self) -> dict[str, Any]:
        """JSON schema of the handler parameters, as the transport derives it."""
        return FastMCPTool.from_function(
            self.handler, name=self.name, description=self.description
        ).parameters


# ---------------------------------------------------------------------------
# Toolset
# ---------------------------------------------------------------------------


def _sorted_scopes(tools: Iterable[ToolDescriptor]) -> list[str]:
    return sorted({scope for tool in tools for scope in tool.required_scopes})


@dataclass(frozen=True, slots=True)
class Toolset:
    """A named group of related tools.

    Tool order is preserved for display; tool names must be unique.
    """

    name: str
    description: str
    tools: tuple[ToolDescriptor, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.tools, tuple):
            object.__setattr__(self, "tools", tuple(self.tools))

        seen: set[str] = set()
        for tool in self.tools:
            if tool.name in seen:
                raise DuplicateToolError(
                    f"tool {tool.name!r} appears more than once in toolset {self.name!r}"
                )
            seen.add(tool.name)

    def get_read_only_tools(self) -> list[ToolDescriptor]:
        return [tool for tool in self.tools if tool.is_read_only]

    def get_all_tools(self) -> list[ToolDescriptor]:
        return list(self.tools)

    def get_required_scopes(self) -> list[str]:
        """Sorted, de-duplicated union of the scopes of every tool."""
        return _sorted_scopes(self.tools)


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SearchResult:
    """A tool matching a search query, with the metadata clients need to pick it."""

    tool: ToolDescriptor
    toolset_name: str
    matched_in: MatchedIn
    required_scopes: tuple[str, ...]
    read_only: bool


class ToolsetMetadata(BaseModel):
    """Introspection summary of one registered toolset."""

    name: str
    description: str
    tool_count: int
    read_only_count: int


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ToolsetRegistry:
    """Registration and lookup of toolsets.

    Lookups never raise for unknown names: an unknown toolset contributes
    no tools and no scopes.
    """

    def __init__(self) -> None:
        self._toolsets: dict[str, Toolset] = {}

    def __len__(self) -> int:
        return len(self._toolsets)

    def __contains__(self, name: object) -> bool:
        return name in self._toolsets

    def register(self, name: str, toolset: Toolset) -> None:
        """Insert or replace the toolset stored under name.

        Raises:
            DuplicateToolError: A tool name is already owned by another toolset.
        """
        owners = {
            tool.name: key
            for key, existing in self._toolsets.items()
            if key != name
            for tool in existing.tools
        }
        for tool in toolset.tools:
            if tool.name in owners:
                raise DuplicateToolError(
                    f"tool {tool.name!r} in toolset {name!r} is already registered "
                    f"by toolset {owners[tool.name]!r}",
                    context={"tool": tool.name},
                )
        self._toolsets[name] = toolset

    def register_toolsets(self, toolsets: Mapping[str, Toolset]) -> None:
        for name, toolset in toolsets.items():
            self.register(name, toolset)

    def get(self, name: str) -> Toolset | None:
        return self._toolsets.get(name)

    def list(self) -> list[str]:
        """Registered toolset names in codepoint order."""
        return sorted(self._toolsets)

    def _resolve_names(self, enabled_toolsets: Iterable[str]) -> list[str]:
        names = list(enabled_toolsets)
        if ALL_TOOLSETS in names:
            return self.list()
        return names

    def _resolve_tools(
        self, enabled_toolsets: Iterable[str], read_only: bool
    ) -> list[ToolDescriptor]:
        tools: list[ToolDescriptor] = []
        for name in self._resolve_names(enabled_toolsets):
            toolset = self._toolsets.get(name)
            if toolset is None:
                continue
            tools.extend(toolset.get_read_only_tools() if read_only else toolset.get_all_tools())
        return tools

    def get_enabled_tools(
        self, enabled_toolsets: Iterable[str], read_only: bool = False
    ) -> list[ToolDescriptor]:
        """Tools of the enabled toolsets, in the order the names were given.

        "all" expands to every registered toolset in sorted order. Repeated
        names yield repeated tools.
        """
        return self._resolve_tools(enabled_toolsets, read_only)

    def get_required_scopes(
        self, enabled_toolsets: Iterable[str], read_only: bool = False
    ) -> list[str]:
        """Minimum set of API token scopes needed for a configuration."""
        return _sorted_scopes(self._resolve_tools(enabled_toolsets, read_only))

    def get_all_tools(self) -> list[ToolDescriptor]:
        return [tool for name in self.list() for tool in self._toolsets[name].tools]

    def get_metadata(self) -> list[ToolsetMetadata]:
        return [
            ToolsetMetadata(
                name=name,
                description=self._toolsets[name].description,
                tool_count=len(self._toolsets[name].tools),
                read_only_count=len(self._toolsets[name].get_read_only_tools()),
            )
            for name in self.list()
        ]

    def search_tools_with_metadata(self, query: str, limit: int) -> list[SearchResult]:
        """Find tools whose name or description contains query, ignoring case.

        Toolsets are scanned in sorted order and scanning stops as soon as
        limit matches are collected; the collected matches are then sorted
        by tool name. An empty query matches every tool.
        """
        results: list[SearchResult] = []
        needle = query.lower()

        for toolset_name in self.list():
            if len(results) >= limit:
                break
            for tool in self._toolsets[toolset_name].tools:
                if len(results) >= limit:
                    break
                name_match = needle in tool.name.lower()
                desc_match = needle in tool.description.lower()
                if not (name_match or desc_match):
                    continue

                matched_in: MatchedIn = "description"
                if name_match and desc_match:
                    matched_in = "both"
                elif name_match:
                    matched_in = "name"

                results.append(
                    SearchResult(
                        tool=tool,
                        toolset_name=toolset_name,
                        matched_in=matched_in,
                        required_scopes=tool.required_scopes,
                        read_only=tool.is_read_only,
                    )
                )

        results.sort(key=lambda result: result.tool.name)
        return results


__all__ = [
    "ALL_TOOLSETS",
    "MatchedIn",
    "SearchResult",
    "ToolDescriptor",
    "ToolHandler",
    "Toolset",
    "ToolsetMetadata",
    "ToolsetRegistry",
]
