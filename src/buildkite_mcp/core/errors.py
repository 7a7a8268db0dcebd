"""Core error types for buildkite_mcp.

This module defines the exception hierarchy shared by the configuration
layer, the toolset registry and the Buildkite API client, without creating
circular import dependencies.
"""

from __future__ import annotations

from typing import Any


class BuildkiteMCPError(Exception):
    """Base exception for all buildkite_mcp errors.

    All custom exceptions should inherit from this class to enable
    consistent error handling across the codebase.
    """

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message


class ConfigError(BuildkiteMCPError):
    """Raised when configuration cannot be loaded or validated."""


class ToolsetValidationError(ConfigError):
    """Raised at startup when unknown toolset names are configured."""

    def __init__(self, invalid: list[str]) -> None:
        super().__init__(f"invalid toolset names: {invalid}", context={"invalid": invalid})
        self.invalid = invalid


class DuplicateToolError(BuildkiteMCPError):
    """Raised when a tool name is registered by more than one toolset."""


class TokenResolutionError(ConfigError):
    """Raised when the Buildkite API token cannot be resolved."""


class ToolValidationError(BuildkiteMCPError):
    """Raised when a tool receives invalid input."""


class APIError(BuildkiteMCPError):
    """Raised when the Buildkite API answers with a non-success status.

    Attributes:
        status_code: HTTP status of the response.
        body: Raw response body, usually carrying detailed error info.
    """

    def __init__(self, message: str, *, status_code: int, body: str = "") -> None:
        super().__init__(message, context={"status_code": status_code})
        self.status_code = status_code
        self.body = body


__all__ = [
    "APIError",
    "BuildkiteMCPError",
    "ConfigError",
    "DuplicateToolError",
    "TokenResolutionError",
    "ToolValidationError",
    "ToolsetValidationError",
]
