"""Build annotation tools."""

from __future__ import annotations

from buildkite_mcp.buildkite.client import BuildkiteClient
from buildkite_mcp.buildkite.tools._common import build_path, pagination, require, to_json
from buildkite_mcp.mcp import tool_error_handler
from buildkite_mcp.toolsets.registry import ToolDescriptor


def list_annotations(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(
        org_slug: str,
        pipeline_slug: str,
        build_number: str,
        page: int | None = None,
        per_page: int | None = None,
    ) -> str:
        require(org_slug=org_slug, pipeline_slug=pipeline_slug, build_number=build_number)
        annotations = await client.get(
            build_path(org_slug, pipeline_slug, build_number, "annotations"),
            params=pagination(page, per_page),
        )
        return to_json(annotations)

    return ToolDescriptor(
        name="list_annotations",
        description="List all annotations for a build, including their context, style (success/info/warning/error), rendered HTML content, and creation timestamps",
        handler=handler,
        read_only=True,
        required_scopes=("read_builds",),
        title="List Annotations",
    )
