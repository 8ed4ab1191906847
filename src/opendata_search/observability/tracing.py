"""OpenTelemetry tracing for HTTP requests and backend calls."""

from __future__ import annotations

from contextlib import contextmanager
import logging
import time
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import SpanKind, Status, StatusCode

from opendata_search.config import ObservabilityCollectorConfig
from opendata_search.observability.context import bind_request, enter_span, release_request
from opendata_search.observability.exporters import build_exporter
from opendata_search.observability.metrics import OTLP_EXPORT_ERRORS, REQUEST_COUNT, REQUEST_LATENCY


if TYPE_CHECKING:
    from collections.abc import Generator

    from opentelemetry.trace import Span, Tracer
    from starlette.requests import Request
    from starlette.responses import Response

logger = logging.getLogger(__name__)

TRACE_ID_HEADER = "x-trace-id"

_tracer_holder: dict[str, Tracer | None] = {"tracer": None}


def init_tracing(
    service_name: str = "opendata-search",
    resource_attributes: dict[str, str] | None = None,
) -> TracerProvider:
    provider = TracerProvider(resource=Resource.create({"service.name": service_name, **(resource_attributes or {})}))
    trace.set_tracer_provider(provider)
    _tracer_holder["tracer"] = trace.get_tracer(__name__)
    logger.info("Tracing initialized for service: %s", service_name)
    return provider


def configure_trace_exporter(config: ObservabilityCollectorConfig | None, provider: TracerProvider) -> None:
    """Batch-export spans of ``provider`` over OTLP when export is enabled.

    A collector that cannot be reached at startup is logged and counted;
    the API keeps serving without trace export.
    """
    if not config or not config.enabled:
        return
    try:
        exporter = build_exporter(config, "traces")
    except Exception as exc:
        logger.error("Failed to configure OTLP trace exporter: %s", exc, exc_info=True)
        OTLP_EXPORT_ERRORS.labels(signal="traces", protocol=config.otlp_protocol).inc()
        return
    provider.add_span_processor(BatchSpanProcessor(exporter))
    logger.info("OTLP trace export enabled (%s) to %s", config.otlp_protocol, config.collector_endpoint)


def get_tracer() -> Tracer:
    """The tracer installed by ``init_tracing``, or the global one."""
    tracer = _tracer_holder["tracer"]
    if tracer is None:
        tracer = _tracer_holder["tracer"] = trace.get_tracer(__name__)
    return tracer


@contextmanager
def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: dict[str, Any] | None = None,
) -> Generator[Span, None, None]:
    """Open a span, make its ids visible to logging, and mark it failed on exceptions."""
    with get_tracer().start_as_current_span(name, kind=kind, attributes=attributes) as span:
        span_context = span.get_span_context()
        if span_context.is_valid:
            enter_span(span_context.trace_id, span_context.span_id)
        try:
            yield span
        except Exception as exc:
            span.set_status(Status(StatusCode.ERROR, str(exc)))
            span.record_exception(exc)
            raise


def _route_label(request: Request) -> str:
    # Route templates keep label cardinality bounded (/facets/{facet_type}/options)
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


async def trace_request(request: Request, call_next: Any) -> Response:
    """``BaseHTTPMiddleware`` dispatch: request context, server span, latency and count."""
    token = bind_request(request.url.path, request.headers.get(TRACE_ID_HEADER))
    start = time.perf_counter()
    status = "500"
    try:
        attributes = {"http.method": request.method, "http.target": request.url.path}
        with create_span("http.request", kind=SpanKind.SERVER, attributes=attributes) as span:
            response: Response = await call_next(request)
            status = str(response.status_code)
            span.set_attribute("http.status_code", response.status_code)
            if response.status_code >= 500:
                span.set_status(Status(StatusCode.ERROR, f"HTTP {response.status_code}"))
            return response
    finally:
        route = _route_label(request)
        REQUEST_LATENCY.labels(route=route).observe(time.perf_counter() - start)
        REQUEST_COUNT.labels(route=route, status=status).inc()
        release_request(token)
