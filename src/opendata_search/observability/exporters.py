"""OTLP exporter construction shared by the trace and metric pipelines."""

from typing import Any, Literal

from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter as GrpcMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter as GrpcSpanExporter
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter as HttpMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter as HttpSpanExporter

from opendata_search.config import ObservabilityCollectorConfig


Signal = Literal["traces", "metrics"]

_EXPORTER_CLASSES: dict[tuple[str, Signal], Any] = {
    ("grpc", "traces"): GrpcSpanExporter,
    ("grpc", "metrics"): GrpcMetricExporter,
    ("http", "traces"): HttpSpanExporter,
    ("http", "metrics"): HttpMetricExporter,
}


def signal_endpoint(config: ObservabilityCollectorConfig, signal: Signal) -> str:
    """Collector endpoint for ``signal``.

    gRPC collectors take every signal on one endpoint. OTLP/HTTP collectors
    use one path per signal, so a configured ``/v1/traces`` or ``/v1/metrics``
    path is swapped for the requested one.
    """
    endpoint = config.collector_endpoint
    if config.otlp_protocol != "http":
        return endpoint
    for configured in ("/v1/traces", "/v1/metrics"):
        if endpoint.endswith(configured):
            return endpoint.removesuffix(configured) + f"/v1/{signal}"
    return endpoint


def build_exporter(config: ObservabilityCollectorConfig, signal: Signal) -> Any:
    exporter_class = _EXPORTER_CLASSES[(config.otlp_protocol, signal)]
    options: dict[str, Any] = {
        "endpoint": signal_endpoint(config, signal),
        "headers": config.headers,
        "timeout": config.timeout_seconds,
    }
    if config.otlp_protocol == "grpc":
        options["insecure"] = config.grpc_insecure
    return exporter_class(**options)
