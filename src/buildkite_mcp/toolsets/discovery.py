"""Discovery tools for dynamic tool loading.

Provides two tools that let a client browse the catalog at runtime instead of
loading every tool schema up front:
    - list_toolsets: toolset names, descriptions and tool counts
    - search_tools: keyword search over tool names and descriptions
"""

import json
from typing import Annotated

from pydantic import BaseModel, Field, TypeAdapter

from buildkite_mcp.core.errors import ToolValidationError
from buildkite_mcp.mcp import tool_error_handler
from buildkite_mcp.toolsets.registry import (
    MatchedIn,
    ToolDescriptor,
    ToolsetMetadata,
    ToolsetRegistry,
)

SEARCH_RESULT_LIMIT = 10
NO_RESULTS_MESSAGE = (
    "No tools found. Try: 'build', 'pipeline', 'artifact', 'log', 'test', 'cluster'"
)


class ToolSearchMatch(BaseModel):
    name: str
    description: str
    toolset: str
    read_only: bool
    matched_in: MatchedIn
    required_scopes: list[str]


_metadata_adapter = TypeAdapter(list[ToolsetMetadata])
_matches_adapter = TypeAdapter(list[ToolSearchMatch])


def list_toolsets_tool(registry: ToolsetRegistry) -> ToolDescriptor:
    @tool_error_handler
    async def list_toolsets() -> str:
        return _metadata_adapter.dump_json(registry.get_metadata()).decode("utf-8")

    return ToolDescriptor(
        name="list_toolsets",
        description=(
            "List all available toolsets and their descriptions. "
            "Use this to browse tool categories before searching."
        ),
        handler=list_toolsets,
        read_only=True,
        title="List Toolsets",
    )


def search_tools_tool(registry: ToolsetRegistry) -> ToolDescriptor:
    @tool_error_handler
    async def search_tools(
        query: Annotated[
            str,
            Field(description="Search query (e.g., 'pipeline', 'artifact', 'log analysis')"),
        ],
    ) -> str:
        if not isinstance(query, str):
            raise ToolValidationError("query parameter is required")

        results = registry.search_tools_with_metadata(query, SEARCH_RESULT_LIMIT)
        if not results:
            return json.dumps({"results": [], "message": NO_RESULTS_MESSAGE})

        matches = [
            ToolSearchMatch(
                name=result.tool.name,
                description=result.tool.description,
                toolset=result.toolset_name,
                read_only=result.read_only,
                matched_in=result.matched_in,
                required_scopes=list(result.required_scopes),
            )
            for result in results
        ]
        return _matches_adapter.dump_json(matches).decode("utf-8")

    return ToolDescriptor(
        name="search_tools",
        description=(
            "Search for tools by name or description. "
            "Use this to discover available tools for your task."
        ),
        handler=search_tools,
        read_only=True,
        title="Search Tools",
    )


def discovery_tools(registry: ToolsetRegistry) -> list[ToolDescriptor]:
    return [list_toolsets_tool(registry), search_tools_tool(registry)]


__all__ = [
    "NO_RESULTS_MESSAGE",
    "SEARCH_RESULT_LIMIT",
    "ToolSearchMatch",
    "discovery_tools",
    "list_toolsets_tool",
    "search_tools_tool",
]
