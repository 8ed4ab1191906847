"""Unit tests for observability module."""

import json
import logging

from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter as GrpcSpanExporter
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode
from prometheus_client import REGISTRY
import pytest

from opendata_search.config import ObservabilityCollectorConfig
from opendata_search.observability import (
    BACKEND_LATENCY,
    SEARCH_STRATEGY,
    JsonFormatter,
    bind_request,
    configure_logging,
    create_span,
    current_request,
    release_request,
    track_latency,
    tracing as tracing_module,
)
from opendata_search.observability.exporters import build_exporter, signal_endpoint


def _record(msg: str, level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord(
        name="opendata_search.search.facet_resolver",
        level=level,
        pathname="facet_resolver.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


@pytest.fixture
def datasets_request():
    token = bind_request("/datasets", trace_id="a" * 32)
    yield current_request()
    release_request(token)


@pytest.fixture
def span_exporter(monkeypatch) -> InMemorySpanExporter:
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    monkeypatch.setitem(tracing_module._tracer_holder, "tracer", provider.get_tracer("test"))
    return exporter


class TestRequestContext:
    def test_bound_request_carries_route_and_fresh_span_id(self, datasets_request):
        assert datasets_request.route == "/datasets"
        assert datasets_request.trace_id == "a" * 32
        assert len(datasets_request.span_id) == 16

    def test_release_restores_previous_context(self):
        before = current_request()
        token = bind_request("/health")
        release_request(token)

        assert current_request() == before

    def test_missing_trace_id_is_generated(self):
        token = bind_request("/health", trace_id=None)
        try:
            assert len(current_request().trace_id) == 32
        finally:
            release_request(token)


class TestJsonFormatter:
    def test_includes_request_context_and_component(self, datasets_request):
        data = json.loads(JsonFormatter().format(_record("facet search")))

        assert data["message"] == "facet search"
        assert data["trace_id"] == "a" * 32
        assert data["span_id"] == datasets_request.span_id
        assert data["component"] == "facet_resolver"
        assert data["route"] == "/datasets"

    def test_outside_a_request_route_is_omitted(self):
        data = json.loads(JsonFormatter().format(_record("startup")))

        assert "route" not in data

    def test_extra_fields_are_redacted(self):
        record = _record("login")
        record.token = "secret-value"
        record.index = "datasets"

        data = json.loads(JsonFormatter().format(record))

        assert data["token"] == "[REDACTED]"
        assert data["index"] == "datasets"

    def test_long_messages_truncated(self):
        data = json.loads(JsonFormatter().format(_record("x" * 5000)))

        assert data["message"].endswith("...")
        assert len(data["message"]) == JsonFormatter.MAX_MESSAGE_LEN + 3

    def test_configure_logging_installs_single_handler(self):
        configure_logging("debug", json_output=True, logger_levels={"opendata_search.app": "warning"})

        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert root.level == logging.DEBUG
        assert logging.getLogger("opendata_search.app").level == logging.WARNING
        assert logging.getLogger("elastic_transport").level == logging.WARNING

    def test_unknown_level_name_falls_back_to_info(self):
        configure_logging("chatty", json_output=False)

        assert logging.getLogger().level == logging.INFO


class TestTracing:
    def test_span_ids_become_the_request_ids(self, span_exporter, datasets_request):
        with create_span("dataset_search.search", attributes={"search.limit": 10}) as span:
            span_context = span.get_span_context()
            assert current_request().span_id == format(span_context.span_id, "016x")
            assert current_request().trace_id == format(span_context.trace_id, "032x")
            assert current_request().route == "/datasets"

        [finished] = span_exporter.get_finished_spans()
        assert finished.name == "dataset_search.search"
        assert finished.attributes["search.limit"] == 10

    def test_span_marks_errors(self, span_exporter):
        with pytest.raises(RuntimeError):
            with create_span("search_backend.execute"):
                raise RuntimeError("boom")

        [finished] = span_exporter.get_finished_spans()
        assert finished.status.status_code is StatusCode.ERROR

    def test_disabled_export_builds_no_exporter(self, monkeypatch):
        built = []
        monkeypatch.setattr(tracing_module, "build_exporter", lambda config, signal: built.append(signal))

        tracing_module.configure_trace_exporter(ObservabilityCollectorConfig(enabled=False), TracerProvider())

        assert built == []


class TestExporters:
    @pytest.mark.parametrize(
        ("endpoint", "signal", "expected"),
        [
            ("http://collector:4318/v1/traces", "metrics", "http://collector:4318/v1/metrics"),
            ("http://collector:4318/v1/metrics", "traces", "http://collector:4318/v1/traces"),
            ("http://collector:4318/v1/traces", "traces", "http://collector:4318/v1/traces"),
            ("http://collector:4318", "metrics", "http://collector:4318"),
        ],
    )
    def test_http_endpoint_follows_signal(self, endpoint, signal, expected):
        config = ObservabilityCollectorConfig(otlp_protocol="http", collector_endpoint=endpoint)

        assert signal_endpoint(config, signal) == expected

    def test_grpc_endpoint_is_shared(self):
        config = ObservabilityCollectorConfig(otlp_protocol="grpc", collector_endpoint="http://collector:4317")

        assert signal_endpoint(config, "metrics") == "http://collector:4317"

    def test_grpc_trace_exporter(self):
        config = ObservabilityCollectorConfig(enabled=True, otlp_protocol="grpc")

        assert isinstance(build_exporter(config, "traces"), GrpcSpanExporter)


class TestMetrics:
    def test_track_latency_observes_histogram(self):
        labels = {"index": "observability-test"}
        before = REGISTRY.get_sample_value("search_backend_latency_seconds_count", labels) or 0

        with track_latency(BACKEND_LATENCY, index="observability-test"):
            pass

        assert REGISTRY.get_sample_value("search_backend_latency_seconds_count", labels) == before + 1

    def test_counter_increments_prometheus_sample(self):
        labels = {"strategy": "observability-test"}
        before = REGISTRY.get_sample_value("dataset_search_strategy_total", labels) or 0

        SEARCH_STRATEGY.labels(strategy="observability-test").inc()

        assert REGISTRY.get_sample_value("dataset_search_strategy_total", labels) == before + 1
