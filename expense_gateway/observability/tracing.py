# ==== OPENTELEMETRY TRACING CONFIGURATION ==== #

"""
OpenTelemetry tracing configuration for the expense gateway.

Spans are always created through ``get_tracer``; they are exported only when an
OTLP endpoint is configured, otherwise the no-op provider absorbs them.
"""

from typing import Any, Dict

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from expense_gateway.observability.logging import get_logger

logger = get_logger(__name__)


# ==== TRACING INITIALIZATION ==== #

def init_tracing(
    service_name: str,
    endpoint: str | None = None,
    headers: str | None = None
) -> bool:
    """
    Initialize OpenTelemetry tracing with an OTLP exporter.

    Args:
        service_name: Name of the service for tracing identification
        endpoint: OTLP collector endpoint; tracing stays disabled when empty
        headers: Comma-separated ``key=value`` exporter headers

    Returns:
        True when an exporter was installed
    """
    # Allow local runs without an APM backend
    if not endpoint:
        return False

    resource = Resource.create({"service.name": service_name})
    provider = TracerProvider(resource=resource)

    exporter = OTLPSpanExporter(
        endpoint=endpoint,
        headers=_parse_headers(headers)
    )

    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    HTTPXClientInstrumentor().instrument()
    logger.info("Tracing initialized", service_name=service_name, endpoint=endpoint)
    return True


def _parse_headers(headers_str: str | None) -> Dict[str, Any]:
    """Parse OTLP headers from a comma-separated ``key=value`` string."""
    headers: Dict[str, Any] = {}
    if not headers_str:
        return headers

    for part in headers_str.split(","):
        if "=" in part:
            key, value = part.split("=", 1)
            headers[key.strip()] = value.strip()

    return headers


def get_tracer(name: str) -> trace.Tracer:
    """Get a tracer instance for the given module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Tracer instance
    """
    return trace.get_tracer(name)
