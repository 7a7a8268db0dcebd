"""Built-in Buildkite toolsets.

The catalog is a flat table: each toolset lists (factory, deferred) pairs,
where a factory turns the API client into one ToolDescriptor and `deferred`
marks tools that clients should only load after discovering them through
search_tools in dynamic mode.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from buildkite_mcp.buildkite.client import BuildkiteClient
from buildkite_mcp.buildkite.tools import (
    annotations,
    artifacts,
    builds,
    clusters,
    jobs,
    logs,
    pipelines,
    tests,
    user,
)
from buildkite_mcp.core.errors import ToolsetValidationError
from buildkite_mcp.toolsets.registry import ALL_TOOLSETS, ToolDescriptor, Toolset

ToolFactory = Callable[[BuildkiteClient], ToolDescriptor]

TOOLSET_CLUSTERS = "clusters"
TOOLSET_PIPELINES = "pipelines"
TOOLSET_BUILDS = "builds"
TOOLSET_ARTIFACTS = "artifacts"
TOOLSET_LOGS = "logs"
TOOLSET_TESTS = "tests"
TOOLSET_ANNOTATIONS = "annotations"
TOOLSET_USER = "user"

EAGER = False
DEFERRED = True


@dataclass(frozen=True, slots=True)
class ToolsetSpec:
    name: str
    description: str
    tools: tuple[tuple[ToolFactory, bool], ...]


BUILTIN_TOOLSETS: dict[str, ToolsetSpec] = {
    TOOLSET_CLUSTERS: ToolsetSpec(
        name="Cluster Management",
        description="Tools for managing Buildkite clusters and cluster queues",
        tools=(
            (clusters.get_cluster, DEFERRED),
            (clusters.list_clusters, DEFERRED),
            (clusters.get_cluster_queue, DEFERRED),
            (clusters.list_cluster_queues, DEFERRED),
        ),
    ),
    TOOLSET_PIPELINES: ToolsetSpec(
        name="Pipeline Management",
        description="Tools for managing Buildkite pipelines",
        tools=(
            (pipelines.get_pipeline, DEFERRED),
            (pipelines.list_pipelines, EAGER),
            (pipelines.create_pipeline, DEFERRED),
            (pipelines.update_pipeline, DEFERRED),
        ),
    ),
    TOOLSET_BUILDS: ToolsetSpec(
        name="Build Operations",
        description="Tools for managing builds and jobs",
        tools=(
            (builds.list_builds, EAGER),
            (builds.get_build, EAGER),
            (builds.get_build_test_engine_runs, DEFERRED),
            (builds.create_build, DEFERRED),
            (builds.wait_for_build, DEFERRED),
            (jobs.unblock_job, DEFERRED),
        ),
    ),
    TOOLSET_ARTIFACTS: ToolsetSpec(
        name="Artifact Management",
        description="Tools for managing build artifacts",
        tools=(
            (artifacts.list_artifacts_for_build, EAGER),
            (artifacts.list_artifacts_for_job, DEFERRED),
            (artifacts.get_artifact, DEFERRED),
        ),
    ),
    TOOLSET_TESTS: ToolsetSpec(
        name="Test Engine",
        description="Tools for managing test runs and test results",
        tools=(
            (tests.list_test_runs, DEFERRED),
            (tests.get_test_run, DEFERRED),
            (tests.get_failed_test_executions, DEFERRED),
            (tests.get_test, DEFERRED),
        ),
    ),
    TOOLSET_LOGS: ToolsetSpec(
        name="Log Management",
        description="Tools for searching, reading, and analyzing job logs",
        tools=(
            (logs.search_logs, EAGER),
            (logs.tail_logs, EAGER),
            (logs.read_logs, EAGER),
        ),
    ),
    TOOLSET_ANNOTATIONS: ToolsetSpec(
        name="Annotation Management",
        description="Tools for managing build annotations",
        tools=((annotations.list_annotations, DEFERRED),),
    ),
    TOOLSET_USER: ToolsetSpec(
        name="User & Organization",
        description="Tools for user and organization information",
        tools=(
            (user.current_user, EAGER),
            (user.user_token_organization, DEFERRED),
            (user.access_token, DEFERRED),
        ),
    ),
}

VALID_TOOLSETS: tuple[str, ...] = (ALL_TOOLSETS, *BUILTIN_TOOLSETS)


def is_valid_toolset(name: str) -> bool:
    return name in VALID_TOOLSETS


def validate_toolsets(names: Iterable[str]) -> None:
    """Reject unknown toolset names before the server starts.

    Raises:
        ToolsetValidationError: One or more names are not built-in toolsets.
    """
    invalid = [name for name in names if not is_valid_toolset(name)]
    if invalid:
        raise ToolsetValidationError(invalid)


def create_builtin_toolsets(client: BuildkiteClient) -> dict[str, Toolset]:
    """Materialize every built-in toolset against one API client."""
    return {
        key: Toolset(
            name=spec.name,
            description=spec.description,
            tools=tuple(
                factory(client).with_defer_loading(deferred) for factory, deferred in spec.tools
            ),
        )
        for key, spec in BUILTIN_TOOLSETS.items()
    }


__all__ = [
    "BUILTIN_TOOLSETS",
    "TOOLSET_ANNOTATIONS",
    "TOOLSET_ARTIFACTS",
    "TOOLSET_BUILDS",
    "TOOLSET_CLUSTERS",
    "TOOLSET_LOGS",
    "TOOLSET_PIPELINES",
    "TOOLSET_TESTS",
    "TOOLSET_USER",
    "ToolFactory",
    "ToolsetSpec",
    "VALID_TOOLSETS",
    "create_builtin_toolsets",
    "is_valid_toolset",
    "validate_toolsets",
]
