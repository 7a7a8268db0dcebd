"""Prompts and resources served next to the tools.

    - user_token_organization_prompt: start pipeline questions from the
      organization that owns the API token
    - debug-logs-guide: a markdown guide to diagnosing failed builds from logs
"""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

USER_TOKEN_ORGANIZATION_PROMPT = "user_token_organization_prompt"
DEBUG_LOGS_GUIDE_NAME = "debug-logs-guide"
DEBUG_LOGS_GUIDE_URI = f"buildkite://{DEBUG_LOGS_GUIDE_NAME}"

DEBUG_LOGS_GUIDE = """\
# Debugging Buildkite build failures with logs

## 1. Find the failing jobs

Call `get_build` with the organization, pipeline and build number. Jobs whose
`state` is `failed` or `broken`, or whose `exit_status` is non-zero, are the
ones to read. Note each job's `id`.

## 2. Look at the end of the log first

Most failures are explained by the last lines a job printed. Call `tail_logs`
with the job id and a `tail` of 50 to 100 lines.

## 3. Search for the error

When the tail is not enough, call `search_logs` with a `pattern` such as
`error|fail|panic|exception|timed out`. Set `context` to a few lines to see
what surrounds each match, and `reverse` to get the most recent matches
first.

## 4. Read around a match

Every entry carries its `row`. Pass it as `seek` to `read_logs`,
with a `limit`, to page through the surrounding section.

## 5. Check the other signals

- `list_annotations` shows summaries that steps published on the build.
- `get_build_test_engine_runs` and `get_failed_test_executions` list
  the failed tests when the pipeline reports to Test Engine.
- `list_artifacts_for_job` lists reports and coverage files that a job uploaded.

## Tips

- Logs are returned without ANSI colors and with timestamps removed.
- Retried jobs each have their own log. Read the most recent attempt.
- A job that never started has an empty log. Check its agent and queue
  with `get_cluster_queue` instead.
"""


def user_token_organization_prompt() -> str:
    return (
        "Before answering questions about the user's pipelines, call "
        "user_token_organization to find the organization their API token "
        "belongs to, and use its slug as org_slug in later tool calls."
    )


def debug_logs_guide() -> str:
    return DEBUG_LOGS_GUIDE


def register_guides(server: FastMCP) -> None:
    server.prompt(
        name=USER_TOKEN_ORGANIZATION_PROMPT,
        description=(
            "When asked for detail of a users pipelines start by looking up "
            "the user's token organization"
        ),
    )(user_token_organization_prompt)
    server.resource(
        DEBUG_LOGS_GUIDE_URI,
        name=DEBUG_LOGS_GUIDE_NAME,
        title="Debug Logs Guide",
        description="Comprehensive guide for debugging Buildkite build failures using logs",
        mime_type="text/markdown",
    )(debug_logs_guide)


__all__ = [
    "DEBUG_LOGS_GUIDE_URI",
    "USER_TOKEN_ORGANIZATION_PROMPT",
    "register_guides",
]
