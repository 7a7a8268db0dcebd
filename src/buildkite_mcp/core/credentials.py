"""API token resolution and request header parsing."""

from __future__ import annotations

import platform
import shutil
import subprocess
from collections.abc import Iterable

from buildkite_mcp.core.console import get_logger
from buildkite_mcp.core.errors import TokenResolutionError

logger = get_logger(__name__)


def user_agent(version: str) -> str:
    return f"buildkite-mcp-server/{version} ({platform.system().lower()}; {platform.machine()})"


def parse_headers(raw_headers: Iterable[str]) -> dict[str, str]:
    """Parse 'Key: Value' strings into a header mapping.

    Entries without a colon or with an empty key are skipped.
    """
    headers: dict[str, str] = {}
    for raw in raw_headers:
        key, sep, value = raw.partition(":")
        key = key.strip()
        if not sep or not key:
            logger.warning("Ignoring malformed HTTP header %r", raw)
            continue
        headers[key] = value.strip()
    return headers


def _read_from_1password(reference: str) -> str:
    binary = shutil.which("op")
    if binary is None:
        raise TokenResolutionError("1Password CLI 'op' not found on PATH")

    # -n avoids a trailing newline in the secret
    result = subprocess.run(
        [binary, "read", "-n", reference],
        capture_output=True,
        text=True,
        check=False,
    )
    if result.returncode != 0:
        raise TokenResolutionError(f"command failed: {result.stderr.strip()}")

    logger.info("Fetched API token from 1Password")
    return result.stdout


def resolve_api_token(token: str | None, token_from_1password: str | None) -> str:
    """Return the API token from exactly one of the two configured sources."""
    if token and token_from_1password:
        raise TokenResolutionError(
            "cannot specify both --api-token and --api-token-from-1password"
        )
    if token:
        return token
    if token_from_1password:
        try:
            return _read_from_1password(token_from_1password)
        except TokenResolutionError as exc:
            raise TokenResolutionError(
                f"failed to fetch API token from 1Password: {exc.message}"
            ) from exc

    raise TokenResolutionError("must specify either --api-token or --api-token-from-1password")


__all__ = ["parse_headers", "resolve_api_token", "user_agent"]
