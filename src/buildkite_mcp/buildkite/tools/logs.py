"""Job log tools: search, tail and paged reads.

Logs are fetched from the job log endpoint and normalized to plain text
before any filtering, so patterns never have to account for escape codes.
"""

from __future__ import annotations

import re
from typing import Any

from buildkite_mcp.buildkite import joblogs
from buildkite_mcp.buildkite.client import BuildkiteClient
from buildkite_mcp.buildkite.tools._common import build_path, require, to_json
from buildkite_mcp.core.errors import ToolValidationError
from buildkite_mcp.mcp import tool_error_handler
from buildkite_mcp.toolsets.registry import ToolDescriptor

SCOPES = ("read_build_logs",)
MAX_LINES = 1000


async def fetch_log_lines(
    client: BuildkiteClient,
    org_slug: str,
    pipeline_slug: str,
    build_number: str,
    job_id: str,
) -> list[str]:
    require(
        org_slug=org_slug,
        pipeline_slug=pipeline_slug,
        build_number=build_number,
        job_id=job_id,
    )
    payload = await client.get(
        build_path(org_slug, pipeline_slug, build_number, "jobs", job_id, "log")
    )
    content = (payload.get("content") or "") if isinstance(payload, dict) else ""
    lines = joblogs.log_lines(content)
    while lines and not lines[-1]:
        lines.pop()
    return lines


def _check_limit(name: str, value: int) -> None:
    if not 1 <= value <= MAX_LINES:
        raise ToolValidationError(f"{name} must be between 1 and {MAX_LINES}")


def _entries(lines: list[str], start: int) -> list[dict[str, Any]]:
    return [{"row": start + offset, "content": line} for offset, line in enumerate(lines)]


def search_logs(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(
        org_slug: str,
        pipeline_slug: str,
        build_number: str,
        job_id: str,
        pattern: str,
        context: int = 0,
        case_sensitive: bool = False,
        invert_match: bool = False,
        reverse: bool = False,
        limit: int = 100,
    ) -> str:
        require(pattern=pattern)
        _check_limit("limit", limit)
        if context < 0:
            raise ToolValidationError("context must be >= 0")
        try:
            regex = re.compile(pattern, 0 if case_sensitive else re.IGNORECASE)
        except re.error as exc:
            raise ToolValidationError(f"invalid pattern: {exc}") from exc

        lines = await fetch_log_lines(client, org_slug, pipeline_slug, build_number, job_id)
        rows = range(len(lines) - 1, -1, -1) if reverse else range(len(lines))

        matches: list[dict[str, Any]] = []
        for row in rows:
            if bool(regex.search(lines[row])) == invert_match:
                continue
            match: dict[str, Any] = {"row": row, "content": lines[row]}
            if context:
                match["before"] = _entries(lines[max(0, row - context) : row], max(0, row - context))
                match["after"] = _entries(lines[row + 1 : row + 1 + context], row + 1)
            matches.append(match)
            if len(matches) >= limit:
                break

        return to_json({"total_rows": len(lines), "match_count": len(matches), "matches": matches})

    return ToolDescriptor(
        name="search_logs",
        description="Search log entries using regex patterns with optional context lines. Use this to find errors or specific output in a job log",
        handler=handler,
        read_only=True,
        required_scopes=SCOPES,
        title="Search Logs",
    )


def tail_logs(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(
        org_slug: str,
        pipeline_slug: str,
        build_number: str,
        job_id: str,
        tail: int = 10,
    ) -> str:
        _check_limit("tail", tail)
        lines = await fetch_log_lines(client, org_slug, pipeline_slug, build_number, job_id)
        start = max(0, len(lines) - tail)
        return to_json({"total_rows": len(lines), "entries": _entries(lines[start:], start)})

    return ToolDescriptor(
        name="tail_logs",
        description="Show the last N entries from a job log. Useful for seeing how a job finished and any final errors",
        handler=handler,
        read_only=True,
        required_scopes=SCOPES,
        title="Tail Logs",
    )


def read_logs(client: BuildkiteClient) -> ToolDescriptor:
    @tool_error_handler
    async def handler(
        org_slug: str,
        pipeline_slug: str,
        build_number: str,
        job_id: str,
        seek: int = 0,
        limit: int = 100,
    ) -> str:
        _check_limit("limit", limit)
        if seek < 0:
            raise ToolValidationError("seek must be >= 0")
        lines = await fetch_log_lines(client, org_slug, pipeline_slug, build_number, job_id)
        window = lines[seek : seek + limit]
        return to_json(
            {
                "total_rows": len(lines),
                "entries": _entries(window, seek),
                "next_seek": seek + len(window) if seek + len(window) < len(lines) else None,
            }
        )

    return ToolDescriptor(
        name="read_logs",
        description="Read log entries sequentially from a row offset. Use seek and limit to page through large job logs",
        handler=handler,
        read_only=True,
        required_scopes=SCOPES,
        title="Read Logs",
    )
