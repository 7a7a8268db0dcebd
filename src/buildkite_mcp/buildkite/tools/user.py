"""User, organization and access token tools."""

from __future__ import annotations

from buildkite_mcp.buildkite.client import BuildkiteClient
from buildkite_mcp.buildkite.tools._common import to_json
from buildkite_mcp.core.errors import APIError
from buildkite_mcp.mcp import tool_error_handler
from buildkite_mcp.toolsets.registry import ToolDescriptor


def current_user(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler() -> str:
        return to_json(await client.get("v2/user"))

    return ToolDescriptor(
        name="current_user",
        description="Get details about the user account that owns the API token, including name, email, avatar, and account creation date",
        handler=handler,
        read_only=True,
        required_scopes=("read_user",),
        title="Get Current User",
    )


def user_token_organization(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler() -> str:
        organizations = await client.get("v2/organizations")
        if not organizations:
            raise APIError("no organization found for the current token", status_code=404)
        return to_json(organizations[0])

    return ToolDescriptor(
        name="user_token_organization",
        description="Get the organization associated with the user token used for this request",
        handler=handler,
        read_only=True,
        required_scopes=("read_organizations",),
        title="Get Organization for User Token",
    )


def access_token(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler() -> str:
        return to_json(await client.get("v2/access-token"))

    return ToolDescriptor(
        name="access_token",
        description="Get information about the current API access token including its scopes and UUID",
        handler=handler,
        read_only=True,
        title="Get Access Token",
    )
