"""Observability module for OpenTelemetry-aligned tracing, metrics, and logging."""

from opendata_search.observability.context import RequestContext, bind_request, current_request, release_request
from opendata_search.observability.logging import JsonFormatter, configure_logging
from opendata_search.observability.metrics import (
    BACKEND_ERRORS,
    BACKEND_LATENCY,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    SEARCH_STRATEGY,
    configure_metrics_exporter,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    track_latency,
)
from opendata_search.observability.tracing import (
    configure_trace_exporter,
    create_span,
    get_tracer,
    init_tracing,
    trace_request,
)


__all__ = [
    "BACKEND_ERRORS",
    "BACKEND_LATENCY",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "SEARCH_STRATEGY",
    "JsonFormatter",
    "RequestContext",
    "bind_request",
    "configure_logging",
    "configure_metrics_exporter",
    "configure_trace_exporter",
    "create_span",
    "current_request",
    "get_metrics",
    "get_metrics_content_type",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "release_request",
    "trace_request",
    "track_latency",
]
