from __future__ import annotations

import asyncio
import functools
import json
from collections.abc import Awaitable, Callable
from typing import ParamSpec

from mcp.server.fastmcp.exceptions import ToolError

from buildkite_mcp.core.console import get_logger
from buildkite_mcp.core.errors import APIError, ToolValidationError
from buildkite_mcp.core.tracing import start_span

logger = get_logger("mcp")

P = ParamSpec("P")
ToolAsyncCallable = Callable[P, Awaitable[str]]


def _format_error(error_code: str, message: str) -> str:
    payload = {"error": error_code, "message": message}
    return json.dumps(payload)


def _tool_name(fn: Callable[..., object]) -> str:
    # Platform tool handlers are named "handler" inside a factory named after the tool.
    if fn.__name__ == "handler":
        return fn.__qualname__.rsplit(".<locals>.", 1)[0].rsplit(".", 1)[-1]
    return fn.__name__


def describe_api_error(exc: APIError) -> tuple[str, str]:
    """Map an API failure to an error code and a message a model can act on."""
    if exc.status_code == 401:
        return (
            "AuthenticationFailed",
            "Authentication failed: Your API token is invalid or has expired. "
            "Please check your BUILDKITE_API_TOKEN and ensure it's still valid.",
        )
    if exc.status_code == 403:
        detail = exc.body or exc.message
        return (
            "PermissionDenied",
            "Permission denied: Your API token doesn't have the required permissions "
            f"for this operation. {detail}".rstrip(),
        )
    if exc.status_code == 404:
        return "NotFound", exc.body or exc.message
    return "APIError", exc.body or exc.message


def tool_error_handler(fn: ToolAsyncCallable[P]) -> ToolAsyncCallable[P]:
    """Decorate a tool to provide consistent error handling.

    Args:
        fn: Asynchronous tool callable to wrap.

    Returns:
        Callable that runs the tool inside a "tools/call <name>" span and
        reports failures as tool errors carrying a JSON payload, logging
        unexpected failures.
    """
    tool_name = _tool_name(fn)

    @functools.wraps(fn)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> str:
        with start_span(f"tools/call {tool_name}", {"mcp.tool.name": tool_name}):
            try:
                return await fn(*args, **kwargs)
            except asyncio.CancelledError:
                raise
            except ToolError:
                raise
            except APIError as exc:
                code, message = describe_api_error(exc)
                raise ToolError(_format_error(code, message)) from exc
            except ToolValidationError as exc:
                raise ToolError(_format_error("InvalidArguments", exc.message)) from exc
            except Exception as exc:
                logger.exception("Unhandled error in tool %s", tool_name)
                raise ToolError(
                    _format_error("UnexpectedError", f"Unexpected error: {exc}")
                ) from exc

    wrapper.__tool_error_handler__ = True  # type: ignore[attr-defined]  # custom marker attr
    return wrapper


__all__ = [
    "describe_api_error",
    "logger",
    "tool_error_handler",
]
