"""Core infrastructure: configuration, console/logging, errors, credentials."""

from __future__ import annotations
