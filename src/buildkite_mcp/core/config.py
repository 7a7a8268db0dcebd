"""Application configuration management.

Handles loading and validating configuration from multiple sources:
    - TOML/JSON config files
    - Environment variables (BUILDKITE_MCP_* prefix)
    - Default values

Key components:
    - AppConfig: Main configuration model
    - load_config(): Safe config loading with fallback
    - ConfigLoadResult: Metadata about config source

Toolset names are deliberately not validated here: an invalid name must stop
the server from starting, while a broken config file only drops to Safe Mode.
See buildkite_mcp.toolsets.validate_toolsets().
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from contextlib import nullcontext
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from unittest.mock import patch

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from buildkite_mcp.core.errors import ConfigError

CONFIG_ENV_VAR = "BUILDKITE_MCP_CONFIG"
DEFAULT_BASE_URL = "https://api.buildkite.com/"


# -----------------------------------------------------------------------------
# Sub-configuration Models
# -----------------------------------------------------------------------------


class APIConfig(BaseModel):
    """Buildkite REST API access."""

    token: str | None = Field(default=None, description="Buildkite API token.")
    token_from_1password: str | None = Field(
        default=None,
        description="1Password item holding the API token, e.g. 'op://vault/item/field'.",
    )
    base_url: str = Field(default=DEFAULT_BASE_URL, description="Base URL of the Buildkite API.")
    http_headers: list[str] = Field(
        default_factory=list,
        description="Additional HTTP headers sent with every request, as 'Key: Value'.",
    )
    timeout: float = Field(default=30.0, description="Per-request timeout in seconds.")

    @field_validator("base_url", mode="after")
    @classmethod
    def ensure_trailing_slash(cls, v: str) -> str:
        return v if v.endswith("/") else f"{v}/"


class ToolsetConfig(BaseModel):
    """Which tools are exposed to clients."""

    enabled: list[str] = Field(
        default_factory=lambda: ["all"],
        description="Toolsets to enable; 'all' enables every registered toolset.",
    )
    read_only: bool = Field(default=False, description="Expose only read-only tools.")
    dynamic: bool = Field(
        default=False,
        description="Add the discovery tools and defer loading of the other tools.",
    )


class HTTPConfig(BaseModel):
    """HTTP transport settings."""

    listen: str = Field(default="localhost:3000", description="Address to listen on.")
    use_sse: bool = Field(
        default=False, description="Use the deprecated SSE transport instead of streamable HTTP."
    )
    auth_token: str | None = Field(
        default=None, description="Bearer token required from HTTP clients when set."
    )
    trust_proxy: bool = Field(
        default=False, description="Trust proxy headers when logging client IPs."
    )


class TracingConfig(BaseModel):
    """OpenTelemetry trace export."""

    exporter: str = Field(
        default="noop",
        description="OTLP exporter protocol: 'http/protobuf', 'grpc' or 'noop'.",
    )
    service_name: str = Field(
        default="buildkite-mcp-server", description="Service name reported on spans."
    )


@dataclass
class ConfigLoadResult:
    path: Path
    file_loaded: bool
    env_overrides: set[str]
    error: str | None = None


class AppConfig(BaseSettings):
    """Application-wide configuration with nested sub-configs."""

    model_config = SettingsConfigDict(
        env_prefix="BUILDKITE_MCP_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    api: APIConfig = Field(default_factory=APIConfig)
    toolsets: ToolsetConfig = Field(default_factory=ToolsetConfig)
    http: HTTPConfig = Field(default_factory=HTTPConfig)
    tracing: TracingConfig = Field(default_factory=TracingConfig)
    log_level: str = Field(default="INFO", description="Log level for server output.")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
        PydanticBaseSettingsSource,
    ]:
        # Ensure environment variables override config file entries.
        return (env_settings, init_settings, dotenv_settings, file_secret_settings)

    def with_overrides(self, section: str, **values: Any) -> AppConfig:
        """Return a copy with non-None values replaced in one sub-config."""
        updates = {key: value for key, value in values.items() if value is not None}
        if not updates:
            return self
        current: BaseModel = getattr(self, section)
        return self.model_copy(update={section: current.model_copy(update=updates)})


def _resolve_config_path(config_path: Path | None, env_vars: Mapping[str, str]) -> Path:
    candidate = (
        config_path
        or env_vars.get(CONFIG_ENV_VAR)
        or (Path.home() / ".config" / "buildkite-mcp" / "config.toml")
    )
    return Path(candidate).expanduser()


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}

    raw = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()
    parser = json.loads if suffix == ".json" else tomllib.loads

    try:
        data = parser(raw)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Syntax error in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config root in {path} must be a mapping.")

    return data


def _detect_env_overrides(env_vars: Mapping[str, str]) -> set[str]:
    """Detect which fields are overridden by environment variables.

    For nested models, detects vars like BUILDKITE_MCP_API__TOKEN.
    """
    prefix = AppConfig.model_config.get("env_prefix", "")
    delimiter = AppConfig.model_config.get("env_nested_delimiter", "__")
    overrides: set[str] = set()

    nested_models: dict[str, type[BaseModel]] = {
        "api": APIConfig,
        "toolsets": ToolsetConfig,
        "http": HTTPConfig,
        "tracing": TracingConfig,
    }

    for group_name, model_cls in nested_models.items():
        for field in model_cls.model_fields:
            env_key = f"{prefix}{group_name}{delimiter}{field}".upper()
            if env_key in env_vars:
                overrides.add(f"{group_name}.{field}")

    if f"{prefix}LOG_LEVEL" in env_vars:
        overrides.add("log_level")

    return overrides


def load_config(
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> tuple[AppConfig, ConfigLoadResult]:
    """
    Load configuration with Safe Mode fallback.
    If the file is invalid, returns default config + error message.
    """
    env_vars: Mapping[str, str] = os.environ if env is None else {**os.environ, **env}
    resolved_path = _resolve_config_path(config_path, env_vars)
    env_overrides = _detect_env_overrides(env_vars)

    error: str | None = None
    file_loaded = False
    file_data: dict[str, Any] = {}

    try:
        file_data = _read_config_file(resolved_path)
        file_loaded = resolved_path.exists()
    except ConfigError as exc:
        error = str(exc)

    context_manager = (
        patch.dict(os.environ, env_vars, clear=False) if env is not None else nullcontext()
    )

    try:
        with context_manager:
            config = AppConfig(**file_data)
    except ValidationError as exc:
        error = str(exc)
        config = AppConfig()

    load_result = ConfigLoadResult(
        path=resolved_path,
        file_loaded=file_loaded,
        env_overrides=env_overrides,
        error=error,
    )

    return config, load_result
