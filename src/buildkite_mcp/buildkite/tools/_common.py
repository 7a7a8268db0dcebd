"""Helpers shared by the Buildkite tool modules."""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import quote

from buildkite_mcp.core.errors import ToolValidationError

DEFAULT_PER_PAGE = 30
MAX_PER_PAGE = 100


def require(**params: Any) -> None:
    """Reject missing or blank required parameters, first offender wins."""
    for name, value in params.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ToolValidationError(f"{name} parameter is required")


def pagination(page: int | None, per_page: int | None) -> dict[str, int]:
    if page is not None and page < 1:
        raise ToolValidationError("page must be >= 1")
    if per_page is not None and not 1 <= per_page <= MAX_PER_PAGE:
        raise ToolValidationError(f"per_page must be between 1 and {MAX_PER_PAGE}")
    return {"page": page or 1, "per_page": per_page or DEFAULT_PER_PAGE}


def segment(value: str) -> str:
    return quote(value.strip(), safe="")


def org_path(org_slug: str, *parts: str) -> str:
    return "/".join(["v2", "organizations", segment(org_slug), *(segment(p) for p in parts)])


def build_path(org_slug: str, pipeline_slug: str, build_number: str, *parts: str) -> str:
    return org_path(org_slug, "pipelines", pipeline_slug, "builds", build_number, *parts)


def to_json(data: Any) -> str:
    return json.dumps(data, default=str)
