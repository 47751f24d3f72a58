"""OpenTelemetry tracing support for the Static Site Operator.

Spans are only recorded when OTEL_TRACES_ENABLED=true; otherwise every helper
here is a no-op.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Iterator

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, Tracer

from .utils.context import get_context_dict

logger = logging.getLogger(__name__)

_tracer: Tracer | None = None
_provider: TracerProvider | None = None


def initialize_tracing(service_name: str = "static-site-operator") -> None:
    """Initialize OpenTelemetry tracing.

    Args:
        service_name: Name of the service for tracing

    Environment Variables:
        OTEL_EXPORTER_OTLP_ENDPOINT: OTLP endpoint URL (default: http://localhost:4317)
        OTEL_SERVICE_NAME: Service name (default: static-site-operator)
        OTEL_TRACES_ENABLED: Enable/disable tracing (default: false)
    """
    global _tracer, _provider

    if os.getenv("OTEL_TRACES_ENABLED", "false").lower() != "true":
        logger.info("Tracing disabled")
        return

    try:
        service_name = os.getenv("OTEL_SERVICE_NAME", service_name)
        endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317")

        _provider = TracerProvider(resource=Resource.create({
            "service.name": service_name,
            "service.version": os.getenv("OTEL_SERVICE_VERSION", "unknown"),
        }))
        _provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
        trace.set_tracer_provider(_provider)
        _tracer = trace.get_tracer(service_name)
        logger.info(f"Tracing enabled, exporting to {endpoint}")
    except Exception as e:
        # A broken collector config must not stop reconciliation
        logger.warning(f"Failed to initialize tracing: {e}")


def shutdown_tracing() -> None:
    """Flush pending spans and stop exporting."""
    global _tracer, _provider

    if _provider is not None:
        _provider.shutdown()
    _tracer = None
    _provider = None


@contextmanager
def trace_span(
    name: str,
    kind: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> Iterator[Span | None]:
    """Context manager for creating a trace span.

    The bound run context (correlation ID, site, node) is attached as
    attributes so spans line up with log lines.

    Args:
        name: Name of the span
        kind: Resource kind (e.g., "StaticSite", "CloudFrontDistribution")
        attributes: Additional span attributes

    Yields:
        Span object or None if tracing is not initialized
    """
    if _tracer is None:
        yield None
        return

    attrs = {f"run.{key}": value for key, value in get_context_dict().items()}
    attrs.update(attributes or {})
    if kind:
        attrs["resource.kind"] = kind

    with _tracer.start_as_current_span(
        name, attributes=attrs, record_exception=False, set_status_on_exception=False,
    ) as span:
        try:
            yield span
        except Exception as e:
            if span.is_recording():
                span.record_exception(e)
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
            raise


def add_span_attribute(key: str, value: Any) -> None:
    """Add an attribute to the current span."""
    span = trace.get_current_span()
    if span and span.is_recording():
        span.set_attribute(key, value)
