"""Cluster and cluster queue tools."""

from __future__ import annotations

from buildkite_mcp.buildkite.client import BuildkiteClient
from buildkite_mcp.buildkite.tools._common import org_path, pagination, require, to_json
from buildkite_mcp.mcp import tool_error_handler
from buildkite_mcp.toolsets.registry import ToolDescriptor

SCOPES = ("read_clusters",)


def get_cluster(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(org_slug: str, cluster_id: str) -> str:
        require(org_slug=org_slug, cluster_id=cluster_id)
        cluster = await client.get(org_path(org_slug, "clusters", cluster_id))
        return to_json(cluster)

    return ToolDescriptor(
        name="get_cluster",
        description="Get detailed information about a specific cluster including its name, description, default queue, and configuration",
        handler=handler,
        read_only=True,
        required_scopes=SCOPES,
        title="Get Cluster",
    )


def list_clusters(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(
        org_slug: str, page: int | None = None, per_page: int | None = None
    ) -> str:
        require(org_slug=org_slug)
        clusters = await client.get(
            org_path(org_slug, "clusters"), params=pagination(page, per_page)
        )
        return to_json(clusters)

    return ToolDescriptor(
        name="list_clusters",
        description="List all clusters in an organization with their names, descriptions, default queues, and creation details",
        handler=handler,
        read_only=True,
        required_scopes=SCOPES,
        title="List Clusters",
    )


def get_cluster_queue(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(org_slug: str, cluster_id: str, queue_id: str) -> str:
        require(org_slug=org_slug, cluster_id=cluster_id, queue_id=queue_id)
        queue = await client.get(org_path(org_slug, "clusters", cluster_id, "queues", queue_id))
        return to_json(queue)

    return ToolDescriptor(
        name="get_cluster_queue",
        description="Get detailed information about a specific queue including its key, description, dispatch status, and hosted agent configuration",
        handler=handler,
        read_only=True,
        required_scopes=SCOPES,
        title="Get Cluster Queue",
    )


def list_cluster_queues(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(
        org_slug: str,
        cluster_id: str,
        page: int | None = None,
        per_page: int | None = None,
    ) -> str:
        require(org_slug=org_slug, cluster_id=cluster_id)
        queues = await client.get(
            org_path(org_slug, "clusters", cluster_id, "queues"),
            params=pagination(page, per_page),
        )
        return to_json(queues)

    return ToolDescriptor(
        name="list_cluster_queues",
        description="List all queues in a cluster with their keys, descriptions, dispatch status, and agent configuration",
        handler=handler,
        read_only=True,
        required_scopes=SCOPES,
        title="List Cluster Queues",
    )
