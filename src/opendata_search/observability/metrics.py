"""Search API metrics.

Every metric is recorded twice: into the Prometheus registry served at
``/metrics``, and into an OpenTelemetry instrument of the same name that
an OTLP reader pushes when export is enabled.
"""

from __future__ import annotations

from collections.abc import Sequence
from contextlib import contextmanager
from dataclasses import dataclass
import time
from typing import TYPE_CHECKING, Any

from opentelemetry import metrics as otel_metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

from opendata_search.config import ObservabilityCollectorConfig
from opendata_search.observability.exporters import build_exporter


if TYPE_CHECKING:
    from collections.abc import Generator


_meter_holder: dict[str, Any] = {"meter": None, "provider": None}


def init_metrics(
    service_name: str = "opendata-search",
    resource_attributes: dict[str, str] | None = None,
    metric_readers: list[PeriodicExportingMetricReader] | None = None,
) -> MeterProvider:
    """Install the OTel meter provider once; later calls return the installed one."""
    provider = _meter_holder["provider"]
    if provider is not None:
        return provider

    provider = MeterProvider(
        resource=Resource.create({"service.name": service_name, **(resource_attributes or {})}),
        metric_readers=metric_readers or [],
    )
    otel_metrics.set_meter_provider(provider)
    _meter_holder.update(provider=provider, meter=otel_metrics.get_meter(__name__))
    return provider


def configure_metrics_exporter(
    config: ObservabilityCollectorConfig | None,
    *,
    service_name: str = "opendata-search",
) -> None:
    """Push metrics over OTLP. Must run before the first metric is recorded."""
    if not config or not config.enabled:
        return
    init_metrics(
        service_name=service_name,
        resource_attributes=dict(config.resource_attributes),
        metric_readers=[PeriodicExportingMetricReader(build_exporter(config, "metrics"))],
    )


def _meter():
    if _meter_holder["meter"] is None:
        init_metrics()
    return _meter_holder["meter"]


class MetricBridge:
    """A Prometheus counter or histogram mirrored to an OTel instrument.

    Passing ``buckets`` makes it a histogram. The OTel instrument is created
    on first use so the exporter can be configured after import.
    """

    def __init__(
        self,
        name: str,
        description: str,
        labelnames: Sequence[str],
        *,
        buckets: Sequence[float] | None = None,
    ) -> None:
        self.name = name
        self.description = description
        self.is_histogram = buckets is not None
        if buckets is not None:
            self.prometheus: Counter | Histogram = Histogram(name, description, labelnames, buckets=buckets)
        else:
            self.prometheus = Counter(name, description, labelnames)
        self._instrument = None

    def labels(self, **labels: str) -> LabelledMetric:
        return LabelledMetric(self, labels)

    def instrument(self):
        if self._instrument is None:
            meter = _meter()
            create = meter.create_histogram if self.is_histogram else meter.create_counter
            self._instrument = create(self.name, description=self.description)
        return self._instrument


@dataclass(frozen=True)
class LabelledMetric:
    metric: MetricBridge
    labels: dict[str, str]

    def inc(self, amount: float = 1.0) -> None:
        self.metric.prometheus.labels(**self.labels).inc(amount)
        self.metric.instrument().add(amount, self.labels)

    def observe(self, value: float) -> None:
        self.metric.prometheus.labels(**self.labels).observe(value)
        self.metric.instrument().record(value, self.labels)


REQUEST_LATENCY = MetricBridge(
    "search_api_request_latency_seconds",
    "HTTP request latency in seconds",
    ["route"],
    buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)
REQUEST_COUNT = MetricBridge("search_api_requests_total", "HTTP requests by route and status", ["route", "status"])
BACKEND_LATENCY = MetricBridge(
    "search_backend_latency_seconds",
    "Search backend round-trip latency",
    ["index"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)
BACKEND_ERRORS = MetricBridge(
    "search_backend_errors_total", "Failed search backend requests", ["index", "error_type"]
)
SEARCH_STRATEGY = MetricBridge(
    "dataset_search_strategy_total", "Dataset searches by the strategy that produced the result", ["strategy"]
)
OTLP_EXPORT_ERRORS = MetricBridge(
    "otlp_export_errors_total", "OTLP exporters that failed to start", ["signal", "protocol"]
)


@contextmanager
def track_latency(histogram: MetricBridge, **labels: str) -> Generator[None, None, None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
