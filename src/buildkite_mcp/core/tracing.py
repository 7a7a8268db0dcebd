"""OpenTelemetry integration for tool calls and Buildkite API requests.

OpenTelemetry is an optional dependency. Without it, or with the "noop"
exporter, start_span() yields None and nothing is recorded.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import AbstractContextManager, contextmanager
from typing import Any, Protocol

from buildkite_mcp.core.console import get_logger
from buildkite_mcp.core.errors import ConfigError

logger = get_logger(__name__)

EXPORTER_HTTP = "http/protobuf"
EXPORTER_GRPC = "grpc"
EXPORTER_NOOP = "noop"
EXPORTERS = (EXPORTER_HTTP, EXPORTER_GRPC, EXPORTER_NOOP)

TRACER_NAME = "buildkite_mcp"


# -----------------------------------------------------------------------------
# OpenTelemetry Protocol Types
# -----------------------------------------------------------------------------


class SpanProtocol(Protocol):
    def set_attribute(self, key: str, value: object) -> None: ...


class TracerProtocol(Protocol):
    def start_as_current_span(
        self, name: str, attributes: Mapping[str, object] | None = None
    ) -> AbstractContextManager[SpanProtocol]: ...


class TracerProviderProtocol(Protocol):
    def get_tracer(self, name: str) -> TracerProtocol: ...

    def shutdown(self) -> None: ...


# -----------------------------------------------------------------------------
# Module State
# -----------------------------------------------------------------------------

_otel_provider: TracerProviderProtocol | None = None
_otel_tracer: TracerProtocol | None = None


def _load_otel_deps(exporter: str) -> tuple[Any, Any, Any, Any] | None:
    """Load the SDK and the OTLP exporter for a protocol.

    Returns None if the opentelemetry packages are not installed.
    """
    try:
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        if exporter == EXPORTER_GRPC:
            from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
                OTLPSpanExporter,
            )
        else:
            from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
                OTLPSpanExporter,
            )
    except ImportError:
        return None
    return Resource, TracerProvider, BatchSpanProcessor, OTLPSpanExporter


def use_tracer_provider(provider: TracerProviderProtocol | None) -> None:
    """Record spans through provider, or stop recording when it is None."""
    global _otel_provider, _otel_tracer

    _otel_provider = provider
    _otel_tracer = provider.get_tracer(TRACER_NAME) if provider is not None else None


def configure_tracing(exporter: str, service_name: str, version: str) -> bool:
    """Set up OTLP span export.

    The endpoint and headers come from the standard OTEL_EXPORTER_OTLP_*
    environment variables, read by the exporter itself.

    Returns:
        True if spans will be exported.

    Raises:
        ConfigError: If exporter is not a known protocol.
    """
    if exporter not in EXPORTERS:
        raise ConfigError(
            f"invalid OpenTelemetry exporter {exporter!r}, expected one of {list(EXPORTERS)}",
            context={"exporter": exporter},
        )
    if exporter == EXPORTER_NOOP:
        return False

    deps = _load_otel_deps(exporter)
    if deps is None:
        logger.warning(
            "OpenTelemetry exporter %s requested but opentelemetry is not installed", exporter
        )
        return False

    resource_cls, provider_cls, processor_cls, exporter_cls = deps
    provider = provider_cls(
        resource=resource_cls.create({"service.name": service_name, "service.version": version})
    )
    provider.add_span_processor(processor_cls(exporter_cls()))
    use_tracer_provider(provider)

    logger.info("Exporting traces over OTLP (%s) as %s", exporter, service_name)
    return True


def shutdown_tracing() -> None:
    """Flush pending spans and stop recording."""
    if _otel_provider is not None:
        _otel_provider.shutdown()
    use_tracer_provider(None)


@contextmanager
def start_span(
    name: str, attributes: Mapping[str, object] | None = None
) -> Iterator[SpanProtocol | None]:
    """Run the body inside a span; exceptions mark the span as failed."""
    if _otel_tracer is None:
        yield None
        return

    with _otel_tracer.start_as_current_span(name, attributes=dict(attributes or {})) as span:
        yield span


__all__ = [
    "EXPORTERS",
    "configure_tracing",
    "shutdown_tracing",
    "start_span",
    "use_tracer_provider",
]
