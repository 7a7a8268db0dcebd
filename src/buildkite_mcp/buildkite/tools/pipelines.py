"""Pipeline tools."""

from __future__ import annotations

from typing import Any

from buildkite_mcp.buildkite.client import BuildkiteClient
from buildkite_mcp.buildkite.tools._common import org_path, pagination, require, to_json
from buildkite_mcp.core.errors import ToolValidationError
from buildkite_mcp.mcp import tool_error_handler
from buildkite_mcp.toolsets.registry import ToolDescriptor

READ_SCOPES = ("read_pipelines",)
WRITE_SCOPES = ("write_pipelines",)

# Fields kept when listing pipelines; full records are large and mostly noise.
_SUMMARY_FIELDS = (
    "id",
    "name",
    "slug",
    "repository",
    "default_branch",
    "description",
    "web_url",
    "cluster_id",
    "created_at",
)


def _summarize(pipeline: dict[str, Any]) -> dict[str, Any]:
    return {key: pipeline.get(key) for key in _SUMMARY_FIELDS if key in pipeline}


def get_pipeline(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(org_slug: str, pipeline_slug: str) -> str:
        require(org_slug=org_slug, pipeline_slug=pipeline_slug)
        pipeline = await client.get(org_path(org_slug, "pipelines", pipeline_slug))
        return to_json(pipeline)

    return ToolDescriptor(
        name="get_pipeline",
        description="Get detailed information about a specific pipeline including its configuration, steps, environment variables, and build statistics",
        handler=handler,
        read_only=True,
        required_scopes=READ_SCOPES,
        title="Get Pipeline",
    )


def list_pipelines(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(
        org_slug: str,
        name: str | None = None,
        repository: str | None = None,
        detail_level: str = "summary",
        page: int | None = None,
        per_page: int | None = None,
    ) -> str:
        require(org_slug=org_slug)
        params: dict[str, Any] = {"name": name, "repository": repository}
        params.update(pagination(page, per_page))
        pipelines = await client.get(org_path(org_slug, "pipelines"), params=params)
        if detail_level == "summary" and isinstance(pipelines, list):
            pipelines = [_summarize(pipeline) for pipeline in pipelines]
        return to_json(pipelines)

    return ToolDescriptor(
        name="list_pipelines",
        description="List all pipelines in an organization with their basic details, build counts, and current status. Use detail_level='full' for complete records",
        handler=handler,
        read_only=True,
        required_scopes=READ_SCOPES,
        title="List Pipelines",
    )


def create_pipeline(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(
        org_slug: str,
        name: str,
        repository_url: str,
        configuration: str,
        cluster_id: str,
        description: str | None = None,
        default_branch: str | None = None,
        tags: list[str] | None = None,
    ) -> str:
        require(
            org_slug=org_slug,
            name=name,
            repository_url=repository_url,
            configuration=configuration,
            cluster_id=cluster_id,
        )
        body: dict[str, Any] = {
            "name": name,
            "repository": repository_url,
            "configuration": configuration,
            "cluster_id": cluster_id,
        }
        if description is not None:
            body["description"] = description
        if default_branch is not None:
            body["default_branch"] = default_branch
        if tags:
            body["tags"] = tags
        pipeline = await client.post(org_path(org_slug, "pipelines"), json=body)
        return to_json(pipeline)

    return ToolDescriptor(
        name="create_pipeline",
        description="Set up a new CI/CD pipeline in Buildkite with YAML configuration, repository connection, and cluster assignment",
        handler=handler,
        read_only=False,
        required_scopes=WRITE_SCOPES,
        title="Create Pipeline",
    )


def update_pipeline(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(
        org_slug: str,
        pipeline_slug: str,
        name: str | None = None,
        repository_url: str | None = None,
        configuration: str | None = None,
        cluster_id: str | None = None,
        description: str | None = None,
        default_branch: str | None = None,
        tags: list[str] | None = None,
    ) -> str:
        require(org_slug=org_slug, pipeline_slug=pipeline_slug)
        changes: dict[str, Any] = {
            "name": name,
            "repository": repository_url,
            "configuration": configuration,
            "cluster_id": cluster_id,
            "description": description,
            "default_branch": default_branch,
            "tags": tags,
        }
        body = {key: value for key, value in changes.items() if value is not None}
        if not body:
            raise ToolValidationError("at least one field to update is required")
        pipeline = await client.patch(org_path(org_slug, "pipelines", pipeline_slug), json=body)
        return to_json(pipeline)

    return ToolDescriptor(
        name="update_pipeline",
        description="Modify an existing Buildkite pipeline's configuration, repository, settings, or metadata",
        handler=handler,
        read_only=False,
        required_scopes=WRITE_SCOPES,
        title="Update Pipeline",
    )
