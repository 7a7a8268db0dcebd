"""Job log normalization.

Buildkite job logs are raw terminal output. Before they are handed to a model
we strip escape sequences and Buildkite timestamp markers and resolve
carriage-return overwrites, which cuts the token count substantially.
"""

from __future__ import annotations

import re

# Buildkite timestamp markers: ESC _ bk;t=<millis> BEL
_APC_SEQUENCE = re.compile(r"\x1b_[^\x07\x1b]*(?:\x07|\x1b\\)")
_OSC_SEQUENCE = re.compile(r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)")
_CSI_SEQUENCE = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]")
_TWO_BYTE_SEQUENCE = re.compile(r"\x1b[@-Z\\-_]")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")


def strip_escape_sequences(text: str) -> str:
    text = _APC_SEQUENCE.sub("", text)
    text = _OSC_SEQUENCE.sub("", text)
    text = _CSI_SEQUENCE.sub("", text)
    return _TWO_BYTE_SEQUENCE.sub("", text)


def _resolve_line(line: str) -> str:
    # A carriage return rewinds the cursor; the last segment wins.
    line = line.rstrip("\r")
    if "\r" in line:
        line = line.rsplit("\r", 1)[-1]
    return _CONTROL_CHARS.sub("", line).rstrip()


def log_lines(content: str) -> list[str]:
    """Split raw log content into plain-text lines."""
    cleaned = strip_escape_sequences(content)
    return [_resolve_line(line) for line in cleaned.split("\n")]


def process(content: str) -> str:
    """Return the plain-text rendering of a raw job log."""
    lines = log_lines(content)
    while lines and not lines[-1]:
        lines.pop()
    return "".join(f"{line}\n" for line in lines)


__all__ = ["log_lines", "process", "strip_escape_sequences"]
