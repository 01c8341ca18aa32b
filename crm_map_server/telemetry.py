"""OpenTelemetry tracing for the CRM map server.

Spans cover place resolution, search evaluation and viewport updates, and are
exported over OTLP/HTTP when tracing is enabled.

Environment Variables:
    TRACING_ENABLED: Set to 'true' to enable tracing (default: false)
    OTLP_ENDPOINT: Collector URL (default: http://localhost:4318)
    TRACING_SERVICE_NAME: Service name on exported spans (default: crm-map-server)
"""

import os
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import ReadableSpan, SpanProcessor, TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

SPAN_KIND_ATTRIBUTE = "crm.span.kind"


def is_tracing_enabled() -> bool:
    """Check if tracing is enabled via environment variable."""
    return os.getenv("TRACING_ENABLED", "false").lower() == "true"


def get_otlp_endpoint() -> str:
    """Get the OTLP collector endpoint."""
    return os.getenv("OTLP_ENDPOINT", "http://localhost:4318")


def get_service_name() -> str:
    """Get the service name reported on spans."""
    return os.getenv("TRACING_SERVICE_NAME", "crm-map-server")


class SpanKindProcessor(SpanProcessor):
    """Tag spans with the subsystem they belong to.

    Mappings:
        - 'geocode*' spans -> GEOCODE
        - 'search*' spans -> SEARCH
        - 'viewport*' spans -> VIEWPORT
        - anything else -> CHAIN
    """

    def on_start(self, span: Any, parent_context: Any = None) -> None:
        if not hasattr(span, "name") or not hasattr(span, "set_attribute"):
            return

        span_name = span.name.lower()
        if span_name.startswith("geocode"):
            span.set_attribute(SPAN_KIND_ATTRIBUTE, "GEOCODE")
        elif span_name.startswith("search"):
            span.set_attribute(SPAN_KIND_ATTRIBUTE, "SEARCH")
        elif span_name.startswith("viewport"):
            span.set_attribute(SPAN_KIND_ATTRIBUTE, "VIEWPORT")
        else:
            span.set_attribute(SPAN_KIND_ATTRIBUTE, "CHAIN")

    def on_end(self, span: ReadableSpan) -> None:
        pass

    def shutdown(self) -> None:
        pass

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True


_tracer_provider: TracerProvider | None = None


def initialize_tracing() -> TracerProvider | None:
    """Initialize OpenTelemetry tracing.

    Returns:
        TracerProvider if tracing is enabled, None otherwise.
    """
    global _tracer_provider

    if not is_tracing_enabled():
        return None

    if _tracer_provider is not None:
        return _tracer_provider

    exporter = OTLPSpanExporter(endpoint=f"{get_otlp_endpoint()}/v1/traces")

    _tracer_provider = TracerProvider(resource=Resource.create({SERVICE_NAME: get_service_name()}))
    # Kind tagging runs before export
    _tracer_provider.add_span_processor(SpanKindProcessor())
    _tracer_provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(_tracer_provider)
    return _tracer_provider


def get_tracer(name: str = "crm-map-server") -> trace.Tracer:
    """Get a tracer instance (no-op if tracing disabled)."""
    return trace.get_tracer(name)
