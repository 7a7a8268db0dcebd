"""Build tools: listing, inspection, creation and waiting."""

from __future__ import annotations

import asyncio
from time import monotonic
from typing import Any

from buildkite_mcp.buildkite.client import BuildkiteClient
from buildkite_mcp.buildkite.tools._common import (
    build_path,
    org_path,
    pagination,
    require,
    to_json,
)
from buildkite_mcp.core.errors import ToolValidationError
from buildkite_mcp.mcp import tool_error_handler
from buildkite_mcp.toolsets.registry import ToolDescriptor

READ_SCOPES = ("read_builds",)
WRITE_SCOPES = ("write_builds",)

TERMINAL_STATES = frozenset({"passed", "failed", "canceled", "skipped", "not_run"})
POLL_INTERVAL_SECONDS = 5.0
MAX_WAIT_SECONDS = 3600


def _job_summary(build: dict[str, Any]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for job in build.get("jobs") or []:
        state = job.get("state") or "unknown"
        counts[state] = counts.get(state, 0) + 1
    return dict(sorted(counts.items()))


def list_builds(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(
        org_slug: str,
        pipeline_slug: str,
        branch: str | None = None,
        state: str | None = None,
        commit: str | None = None,
        creator: str | None = None,
        page: int | None = None,
        per_page: int | None = None,
    ) -> str:
        require(org_slug=org_slug, pipeline_slug=pipeline_slug)
        params: dict[str, Any] = {
            "branch": branch,
            "state": state,
            "commit": commit,
            "creator": creator,
        }
        params.update(pagination(page, per_page))
        builds = await client.get(
            org_path(org_slug, "pipelines", pipeline_slug, "builds"), params=params
        )
        return to_json(builds)

    return ToolDescriptor(
        name="list_builds",
        description="List all builds for a pipeline with their status, commit information, and metadata",
        handler=handler,
        read_only=True,
        required_scopes=READ_SCOPES,
        title="List Builds",
    )


def get_build(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(
        org_slug: str,
        pipeline_slug: str,
        build_number: str,
        detail_level: str = "detailed",
        job_state: str | None = None,
    ) -> str:
        require(org_slug=org_slug, pipeline_slug=pipeline_slug, build_number=build_number)
        build = await client.get(build_path(org_slug, pipeline_slug, build_number))

        if job_state and isinstance(build, dict):
            build["jobs"] = [
                job for job in build.get("jobs") or [] if job.get("state") == job_state
            ]
        if detail_level == "summary" and isinstance(build, dict):
            build = {
                "id": build.get("id"),
                "number": build.get("number"),
                "state": build.get("state"),
                "branch": build.get("branch"),
                "commit": build.get("commit"),
                "message": build.get("message"),
                "web_url": build.get("web_url"),
                "created_at": build.get("created_at"),
                "finished_at": build.get("finished_at"),
                "job_summary": _job_summary(build),
            }
        return to_json(build)

    return ToolDescriptor(
        name="get_build",
        description="Get detailed information about a specific build including its jobs, timing, and execution details. Use detail_level='summary' for a compact view",
        handler=handler,
        read_only=True,
        required_scopes=READ_SCOPES,
        title="Get Build",
    )


def get_build_test_engine_runs(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(org_slug: str, pipeline_slug: str, build_number: str) -> str:
        require(org_slug=org_slug, pipeline_slug=pipeline_slug, build_number=build_number)
        build = await client.get(
            build_path(org_slug, pipeline_slug, build_number),
            params={"include_test_engine": "true"},
        )
        runs = ((build or {}).get("test_engine") or {}).get("runs") or []
        return to_json(runs)

    return ToolDescriptor(
        name="get_build_test_engine_runs",
        description="Get test engine runs data for a specific build. This can be used to look up Test Runs",
        handler=handler,
        read_only=True,
        required_scopes=READ_SCOPES,
        title="Get Build Test Engine Runs",
    )


def create_build(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(
        org_slug: str,
        pipeline_slug: str,
        commit: str,
        branch: str,
        message: str,
        environment: dict[str, str] | None = None,
        metadata: dict[str, str] | None = None,
    ) -> str:
        require(
            org_slug=org_slug,
            pipeline_slug=pipeline_slug,
            commit=commit,
            branch=branch,
            message=message,
        )
        body: dict[str, Any] = {"commit": commit, "branch": branch, "message": message}
        if environment:
            body["env"] = environment
        if metadata:
            body["meta_data"] = metadata
        build = await client.post(
            org_path(org_slug, "pipelines", pipeline_slug, "builds"), json=body
        )
        return to_json(build)

    return ToolDescriptor(
        name="create_build",
        description="Trigger a new build on a Buildkite pipeline for a specific commit and branch, with optional environment variables and metadata",
        handler=handler,
        read_only=False,
        required_scopes=WRITE_SCOPES,
        title="Create Build",
    )


def wait_for_build(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(
        org_slug: str,
        pipeline_slug: str,
        build_number: str,
        wait_timeout: int = 300,
    ) -> str:
        require(org_slug=org_slug, pipeline_slug=pipeline_slug, build_number=build_number)
        if not 1 <= wait_timeout <= MAX_WAIT_SECONDS:
            raise ToolValidationError(
                f"wait_timeout must be between 1 and {MAX_WAIT_SECONDS} seconds"
            )

        path = build_path(org_slug, pipeline_slug, build_number)
        deadline = monotonic() + wait_timeout
        while True:
            build = await client.get(path)
            state = build.get("state")
            if state in TERMINAL_STATES:
                break
            if monotonic() >= deadline:
                return to_json(
                    {
                        "timed_out": True,
                        "state": state,
                        "web_url": build.get("web_url"),
                        "job_summary": _job_summary(build),
                    }
                )
            await asyncio.sleep(POLL_INTERVAL_SECONDS)

        return to_json(
            {
                "timed_out": False,
                "state": state,
                "web_url": build.get("web_url"),
                "finished_at": build.get("finished_at"),
                "job_summary": _job_summary(build),
            }
        )

    return ToolDescriptor(
        name="wait_for_build",
        description="Wait for a specific build to complete, polling until it reaches a finished state or the timeout elapses",
        handler=handler,
        read_only=True,
        required_scopes=READ_SCOPES,
        title="Wait for Build",
    )
