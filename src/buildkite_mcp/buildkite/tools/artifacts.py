"""Artifact tools."""

from __future__ import annotations

import base64
from urllib.parse import urlparse

from buildkite_mcp.buildkite.client import BuildkiteClient
from buildkite_mcp.buildkite.tools._common import build_path, pagination, require, to_json
from buildkite_mcp.core.errors import ToolValidationError
from buildkite_mcp.mcp import tool_error_handler
from buildkite_mcp.toolsets.registry import ToolDescriptor

SCOPES = ("read_artifacts",)


def list_artifacts_for_build(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(
        org_slug: str,
        pipeline_slug: str,
        build_number: str,
        page: int | None = None,
        per_page: int | None = None,
    ) -> str:
        require(org_slug=org_slug, pipeline_slug=pipeline_slug, build_number=build_number)
        artifacts = await client.get(
            build_path(org_slug, pipeline_slug, build_number, "artifacts"),
            params=pagination(page, per_page),
        )
        return to_json(artifacts)

    return ToolDescriptor(
        name="list_artifacts_for_build",
        description="List all artifacts for a build across all jobs, including file details, paths, sizes, MIME types, and download URLs",
        handler=handler,
        read_only=True,
        required_scopes=SCOPES,
        title="List Build Artifacts",
    )


def list_artifacts_for_job(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(
        org_slug: str,
        pipeline_slug: str,
        build_number: str,
        job_id: str,
        page: int | None = None,
        per_page: int | None = None,
    ) -> str:
        require(
            org_slug=org_slug,
            pipeline_slug=pipeline_slug,
            build_number=build_number,
            job_id=job_id,
        )
        artifacts = await client.get(
            build_path(org_slug, pipeline_slug, build_number, "jobs", job_id, "artifacts"),
            params=pagination(page, per_page),
        )
        return to_json(artifacts)

    return ToolDescriptor(
        name="list_artifacts_for_job",
        description="List all artifacts for an individual job, including file details, paths, sizes, MIME types, and download URLs",
        handler=handler,
        read_only=True,
        required_scopes=SCOPES,
        title="List Job Artifacts",
    )


def get_artifact(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(url: str) -> str:
        require(url=url)
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ToolValidationError("url must be an absolute http(s) artifact URL")
        # The API token is sent with the request, so only the API host is allowed.
        api_host = urlparse(client.base_url).netloc
        if parsed.netloc != api_host:
            raise ToolValidationError(f"url must point at the Buildkite API host {api_host}")

        content = await client.download(url)
        try:
            return to_json({"url": url, "encoding": "utf-8", "content": content.decode("utf-8")})
        except UnicodeDecodeError:
            encoded = base64.b64encode(content).decode("ascii")
            return to_json({"url": url, "encoding": "base64", "content": encoded})

    return ToolDescriptor(
        name="get_artifact",
        description="Get an artifact from a Buildkite build",
        handler=handler,
        read_only=True,
        required_scopes=SCOPES,
        title="Get Artifact",
    )
