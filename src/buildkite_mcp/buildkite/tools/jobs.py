"""Job tools."""

from __future__ import annotations

from typing import Any

from buildkite_mcp.buildkite.client import BuildkiteClient
from buildkite_mcp.buildkite.tools._common import build_path, require, to_json
from buildkite_mcp.mcp import tool_error_handler
from buildkite_mcp.toolsets.registry import ToolDescriptor


def unblock_job(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(
        org_slug: str,
        pipeline_slug: str,
        build_number: str,
        job_id: str,
        fields: dict[str, str] | None = None,
    ) -> str:
        require(
            org_slug=org_slug,
            pipeline_slug=pipeline_slug,
            build_number=build_number,
            job_id=job_id,
        )
        body: dict[str, Any] = {}
        if fields:
            body["fields"] = fields
        job = await client.put(
            build_path(org_slug, pipeline_slug, build_number, "jobs", job_id, "unblock"),
            json=body,
        )
        return to_json(job)

    return ToolDescriptor(
        name="unblock_job",
        description="Unblock a blocked job in a Buildkite build to allow it to continue execution",
        handler=handler,
        read_only=False,
        required_scopes=("write_builds",),
        title="Unblock Job",
    )
