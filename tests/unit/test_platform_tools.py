from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio
from mcp.server.fastmcp.exceptions import ToolError

from buildkite_mcp.buildkite.client import BuildkiteClient
from buildkite_mcp.buildkite.tools import (
    artifacts,
    builds,
    jobs,
    logs,
    pipelines,
    user,
)

Route = Callable[[httpx.Request], httpx.Response]


class FakeAPI:
    """Routes requests by path and records them."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Route | Any] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, response: Route | Any) -> None:
        self.routes[(method, path)] = response

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "No route"})
        if callable(route):
            return route(request)
        return httpx.Response(200, json=route)


@pytest.fixture
def api() -> FakeAPI:
    return FakeAPI()


@pytest_asyncio.fixture
async def client(api: FakeAPI) -> AsyncIterator[BuildkiteClient]:
    async with BuildkiteClient("token", transport=httpx.MockTransport(api)) as bk:
        yield bk


def _error(exc: pytest.ExceptionInfo[ToolError]) -> dict[str, str]:
    return json.loads(str(exc.value))


BUILD_PATH = "/v2/organizations/acme/pipelines/web/builds/42"
LOG_PATH = f"{BUILD_PATH}/jobs/job-1/log"
RAW_LOG = "\x1b_bk;t=1\x07--- setup\n\x1b[32mok\x1b[0m\nERROR: boom\nretrying\nERROR: again\ndone\n"


class TestBuildTools:
    @pytest.mark.asyncio
    async def test_get_build_summary_counts_jobs(
        self, api: FakeAPI, client: BuildkiteClient
    ) -> None:
        api.add(
            "GET",
            BUILD_PATH,
            {
                "id": "b1",
                "number": 42,
                "state": "failed",
                "jobs": [{"state": "passed"}, {"state": "failed"}, {"state": "passed"}],
                "env": {"SECRET": "x"},
            },
        )

        handler = builds.get_build(client).handler
        payload = json.loads(
            await handler(
                org_slug="acme", pipeline_slug="web", build_number="42", detail_level="summary"
            )
        )

        assert payload["state"] == "failed"
        assert payload["job_summary"] == {"failed": 1, "passed": 2}
        assert "env" not in payload

    @pytest.mark.asyncio
    async def test_get_build_filters_jobs_by_state(
        self, api: FakeAPI, client: BuildkiteClient
    ) -> None:
        api.add(
            "GET",
            BUILD_PATH,
            {"number": 42, "jobs": [{"id": "a", "state": "passed"}, {"id": "b", "state": "failed"}]},
        )

        handler = builds.get_build(client).handler
        payload = json.loads(
            await handler(
                org_slug="acme", pipeline_slug="web", build_number="42", job_state="failed"
            )
        )

        assert [job["id"] for job in payload["jobs"]] == ["b"]

    @pytest.mark.asyncio
    async def test_list_builds_passes_filters_and_pagination(
        self, api: FakeAPI, client: BuildkiteClient
    ) -> None:
        api.add("GET", "/v2/organizations/acme/pipelines/web/builds", [])

        await builds.list_builds(client).handler(
            org_slug="acme", pipeline_slug="web", branch="main"
        )

        params = dict(api.requests[0].url.params)
        assert params == {"branch": "main", "page": "1", "per_page": "30"}

    @pytest.mark.asyncio
    async def test_missing_required_parameter(self, client: BuildkiteClient) -> None:
        with pytest.raises(ToolError) as excinfo:
            await builds.list_builds(client).handler(org_slug="", pipeline_slug="web")

        assert _error(excinfo) == {
            "error": "InvalidArguments",
            "message": "org_slug parameter is required",
        }

    @pytest.mark.asyncio
    async def test_invalid_per_page(self, client: BuildkiteClient) -> None:
        with pytest.raises(ToolError) as excinfo:
            await builds.list_builds(client).handler(
                org_slug="acme", pipeline_slug="web", per_page=500
            )

        assert "per_page" in _error(excinfo)["message"]

    @pytest.mark.asyncio
    async def test_create_build_sends_env_and_metadata(
        self, api: FakeAPI, client: BuildkiteClient
    ) -> None:
        api.add("POST", "/v2/organizations/acme/pipelines/web/builds", {"number": 43})

        await builds.create_build(client).handler(
            org_slug="acme",
            pipeline_slug="web",
            commit="HEAD",
            branch="main",
            message="Deploy",
            environment={"FOO": "bar"},
            metadata={"release": "1"},
        )

        body = json.loads(api.requests[0].content)
        assert body == {
            "commit": "HEAD",
            "branch": "main",
            "message": "Deploy",
            "env": {"FOO": "bar"},
            "meta_data": {"release": "1"},
        }

    @pytest.mark.asyncio
    async def test_wait_for_build_polls_until_finished(
        self, api: FakeAPI, client: BuildkiteClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        states = iter(["running", "running", "passed"])

        def respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"state": next(states), "jobs": []})

        api.add("GET", BUILD_PATH, respond)
        monkeypatch.setattr(builds, "POLL_INTERVAL_SECONDS", 0)

        payload = json.loads(
            await builds.wait_for_build(client).handler(
                org_slug="acme", pipeline_slug="web", build_number="42"
            )
        )

        assert payload["timed_out"] is False
        assert payload["state"] == "passed"
        assert len(api.requests) == 3

    @pytest.mark.asyncio
    async def test_api_permission_error(self, api: FakeAPI, client: BuildkiteClient) -> None:
        api.add(
            "GET",
            BUILD_PATH,
            lambda request: httpx.Response(403, json={"message": "requires read_builds"}),
        )

        with pytest.raises(ToolError) as excinfo:
            await builds.get_build(client).handler(
                org_slug="acme", pipeline_slug="web", build_number="42"
            )

        payload = _error(excinfo)
        assert payload["error"] == "PermissionDenied"
        assert "requires read_builds" in payload["message"]


class TestJobTools:
    @pytest.mark.asyncio
    async def test_unblock_job_sends_fields(self, api: FakeAPI, client: BuildkiteClient) -> None:
        api.add("PUT", f"{BUILD_PATH}/jobs/job-1/unblock", {"state": "unblocked"})

        result = await jobs.unblock_job(client).handler(
            org_slug="acme",
            pipeline_slug="web",
            build_number="42",
            job_id="job-1",
            fields={"approver": "ops"},
        )

        assert json.loads(result) == {"state": "unblocked"}
        assert json.loads(api.requests[0].content) == {"fields": {"approver": "ops"}}


class TestPipelineTools:
    @pytest.mark.asyncio
    async def test_list_pipelines_summary(self, api: FakeAPI, client: BuildkiteClient) -> None:
        api.add(
            "GET",
            "/v2/organizations/acme/pipelines",
            [{"slug": "web", "name": "Web", "steps": [{"command": "make"}]}],
        )

        payload = json.loads(await pipelines.list_pipelines(client).handler(org_slug="acme"))

        assert payload == [{"name": "Web", "slug": "web"}]

    @pytest.mark.asyncio
    async def test_update_pipeline_requires_a_change(self, client: BuildkiteClient) -> None:
        with pytest.raises(ToolError) as excinfo:
            await pipelines.update_pipeline(client).handler(org_slug="acme", pipeline_slug="web")

        assert _error(excinfo)["error"] == "InvalidArguments"


class TestLogTools:
    @pytest.fixture(autouse=True)
    def log_route(self, api: FakeAPI) -> None:
        api.add("GET", LOG_PATH, {"content": RAW_LOG})

    @pytest.mark.asyncio
    async def test_search_logs_finds_matches_with_context(self, client: BuildkiteClient) -> None:
        payload = json.loads(
            await logs.search_logs(client).handler(
                org_slug="acme",
                pipeline_slug="web",
                build_number="42",
                job_id="job-1",
                pattern="error",
                context=1,
            )
        )

        assert payload["total_rows"] == 6
        assert payload["match_count"] == 2
        first = payload["matches"][0]
        assert first["row"] == 2
        assert first["content"] == "ERROR: boom"
        assert first["before"] == [{"row": 1, "content": "ok"}]
        assert first["after"] == [{"row": 3, "content": "retrying"}]

    @pytest.mark.asyncio
    async def test_search_logs_case_sensitive_and_reverse(self, client: BuildkiteClient) -> None:
        handler = logs.search_logs(client).handler
        common = {
            "org_slug": "acme",
            "pipeline_slug": "web",
            "build_number": "42",
            "job_id": "job-1",
        }

        sensitive = json.loads(await handler(pattern="error", case_sensitive=True, **common))
        reverse = json.loads(await handler(pattern="ERROR", reverse=True, limit=1, **common))

        assert sensitive["match_count"] == 0
        assert [m["content"] for m in reverse["matches"]] == ["ERROR: again"]

    @pytest.mark.asyncio
    async def test_search_logs_rejects_bad_pattern(self, client: BuildkiteClient) -> None:
        with pytest.raises(ToolError) as excinfo:
            await logs.search_logs(client).handler(
                org_slug="acme",
                pipeline_slug="web",
                build_number="42",
                job_id="job-1",
                pattern="(",
            )

        assert "invalid pattern" in _error(excinfo)["message"]

    @pytest.mark.asyncio
    async def test_tail_logs(self, client: BuildkiteClient) -> None:
        payload = json.loads(
            await logs.tail_logs(client).handler(
                org_slug="acme", pipeline_slug="web", build_number="42", job_id="job-1", tail=2
            )
        )

        assert payload["entries"] == [
            {"row": 4, "content": "ERROR: again"},
            {"row": 5, "content": "done"},
        ]

    @pytest.mark.asyncio
    async def test_read_logs_pages(self, client: BuildkiteClient) -> None:
        handler = logs.read_logs(client).handler
        common = {
            "org_slug": "acme",
            "pipeline_slug": "web",
            "build_number": "42",
            "job_id": "job-1",
        }

        first = json.loads(await handler(seek=0, limit=4, **common))
        last = json.loads(await handler(seek=first["next_seek"], limit=4, **common))

        assert [e["content"] for e in first["entries"]] == [
            "--- setup",
            "ok",
            "ERROR: boom",
            "retrying",
        ]
        assert first["next_seek"] == 4
        assert [e["row"] for e in last["entries"]] == [4, 5]
        assert last["next_seek"] is None


class TestArtifactTools:
    @pytest.mark.asyncio
    async def test_get_artifact_text(self, api: FakeAPI, client: BuildkiteClient) -> None:
        api.add(
            "GET",
            "/v2/artifacts/a1/download",
            lambda request: httpx.Response(200, content=b"hello"),
        )

        payload = json.loads(
            await artifacts.get_artifact(client).handler(
                url="https://api.buildkite.com/v2/artifacts/a1/download"
            )
        )

        assert payload["encoding"] == "utf-8"
        assert payload["content"] == "hello"

    @pytest.mark.asyncio
    async def test_get_artifact_binary_is_base64(
        self, api: FakeAPI, client: BuildkiteClient
    ) -> None:
        api.add(
            "GET",
            "/v2/artifacts/a1/download",
            lambda request: httpx.Response(200, content=b"\xff\xfe"),
        )

        payload = json.loads(
            await artifacts.get_artifact(client).handler(
                url="https://api.buildkite.com/v2/artifacts/a1/download"
            )
        )

        assert payload == {
            "url": "https://api.buildkite.com/v2/artifacts/a1/download",
            "encoding": "base64",
            "content": "//4=",
        }

    @pytest.mark.asyncio
    async def test_get_artifact_refuses_foreign_host(
        self, api: FakeAPI, client: BuildkiteClient
    ) -> None:
        with pytest.raises(ToolError) as excinfo:
            await artifacts.get_artifact(client).handler(url="https://example.com/steal")

        assert _error(excinfo)["error"] == "InvalidArguments"
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_get_artifact_describes_what_it_returns(self, client: BuildkiteClient) -> None:
        tool = artifacts.get_artifact(client)

        assert tool.description == "Get an artifact from a Buildkite build"
        assert "SHA-1" not in tool.description


class TestUserTools:
    @pytest.mark.asyncio
    async def test_user_token_organization_returns_first(
        self, api: FakeAPI, client: BuildkiteClient
    ) -> None:
        api.add("GET", "/v2/organizations", [{"slug": "acme"}, {"slug": "other"}])

        payload = json.loads(await user.user_token_organization(client).handler())

        assert payload == {"slug": "acme"}

    @pytest.mark.asyncio
    async def test_user_token_organization_without_orgs(
        self, api: FakeAPI, client: BuildkiteClient
    ) -> None:
        api.add("GET", "/v2/organizations", [])

        with pytest.raises(ToolError) as excinfo:
            await user.user_token_organization(client).handler()

        assert _error(excinfo)["error"] == "NotFound"

    @pytest.mark.asyncio
    async def test_expired_token(self, api: FakeAPI, client: BuildkiteClient) -> None:
        api.add("GET", "/v2/user", lambda request: httpx.Response(401, json={"message": "x"}))

        with pytest.raises(ToolError) as excinfo:
            await user.current_user(client).handler()

        assert _error(excinfo)["error"] == "AuthenticationFailed"
