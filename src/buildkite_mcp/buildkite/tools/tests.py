"""Test Engine tools: runs, failed executions and individual tests."""

from __future__ import annotations

from buildkite_mcp.buildkite.client import BuildkiteClient
from buildkite_mcp.buildkite.tools._common import pagination, require, segment, to_json
from buildkite_mcp.mcp import tool_error_handler
from buildkite_mcp.toolsets.registry import ToolDescriptor

SCOPES = ("read_suites",)


def _suite_path(org_slug: str, test_suite_slug: str, *parts: str) -> str:
    return "/".join(
        [
            "v2",
            "analytics",
            "organizations",
            segment(org_slug),
            "suites",
            segment(test_suite_slug),
            *(segment(part) for part in parts),
        ]
    )


def list_test_runs(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(
        org_slug: str,
        test_suite_slug: str,
        page: int | None = None,
        per_page: int | None = None,
    ) -> str:
        require(org_slug=org_slug, test_suite_slug=test_suite_slug)
        runs = await client.get(
            _suite_path(org_slug, test_suite_slug, "runs"), params=pagination(page, per_page)
        )
        return to_json(runs)

    return ToolDescriptor(
        name="list_test_runs",
        description="List all test runs for a test suite in Buildkite Test Engine",
        handler=handler,
        read_only=True,
        required_scopes=SCOPES,
        title="List Test Runs",
    )


def get_test_run(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(org_slug: str, test_suite_slug: str, run_id: str) -> str:
        require(org_slug=org_slug, test_suite_slug=test_suite_slug, run_id=run_id)
        run = await client.get(_suite_path(org_slug, test_suite_slug, "runs", run_id))
        return to_json(run)

    return ToolDescriptor(
        name="get_test_run",
        description="Get a specific test run in Buildkite Test Engine",
        handler=handler,
        read_only=True,
        required_scopes=SCOPES,
        title="Get Test Run",
    )


def get_failed_test_executions(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(
        org_slug: str,
        test_suite_slug: str,
        run_id: str,
        include_failure_expanded: bool = False,
        page: int | None = None,
        per_page: int | None = None,
    ) -> str:
        require(org_slug=org_slug, test_suite_slug=test_suite_slug, run_id=run_id)
        params: dict[str, object] = {
            "include_failure_expanded": "true" if include_failure_expanded else None
        }
        params.update(pagination(page, per_page))
        executions = await client.get(
            _suite_path(org_slug, test_suite_slug, "runs", run_id, "failed_executions"),
            params=params,
        )
        return to_json(executions)

    return ToolDescriptor(
        name="get_failed_test_executions",
        description="Get failed test executions for a specific test run in Buildkite Test Engine. Optionally get the expanded failure details such as full error messages and stack traces",
        handler=handler,
        read_only=True,
        required_scopes=SCOPES,
        title="Get Failed Test Executions",
    )


def get_test(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(org_slug: str, test_suite_slug: str, test_id: str) -> str:
        require(org_slug=org_slug, test_suite_slug=test_suite_slug, test_id=test_id)
        test = await client.get(_suite_path(org_slug, test_suite_slug, "tests", test_id))
        return to_json(test)

    return ToolDescriptor(
        name="get_test",
        description="Get a specific test in Buildkite Test Engine. This provides additional metadata for failed test executions",
        handler=handler,
        read_only=True,
        required_scopes=SCOPES,
        title="Get Test",
    )
