"""Buildkite platform access: REST client, job log processing and tools."""

from __future__ import annotations

from buildkite_mcp.buildkite.client import BuildkiteClient

__all__ = ["BuildkiteClient"]
