from typing import Any

import pytest
from conftest import ScriptedTransport, envelope, mock_settings
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import SpanKind, StatusCode

from apitree.dispatcher import RequestDispatcher
from apitree.errors import TransportError
from apitree.middleware.otel import otel
from apitree.transport import TransportRequest


@pytest.fixture
def exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def provider(exporter: InMemorySpanExporter) -> TracerProvider:
    tp = TracerProvider()
    tp.add_span_processor(SimpleSpanProcessor(exporter))
    return tp


@pytest.fixture
def metric_reader() -> InMemoryMetricReader:
    return InMemoryMetricReader()


@pytest.fixture
def meter_provider(metric_reader: InMemoryMetricReader) -> MeterProvider:
    return MeterProvider(metric_readers=[metric_reader])


def _get_metric(metric_reader: InMemoryMetricReader, name: str) -> Any:
    """Extract a metric by name from the reader."""
    data = metric_reader.get_metrics_data()
    assert data is not None
    for resource_metric in data.resource_metrics:
        for scope_metric in resource_metric.scope_metrics:
            for metric in scope_metric.metrics:
                if metric.name == name:
                    return metric
    msg = f"Metric {name!r} not found"
    raise AssertionError(msg)


# --- spans --------------------------------------------------------------------
@pytest.mark.asyncio
async def test_client_span(
    provider: TracerProvider, exporter: InMemorySpanExporter
) -> None:
    transport = ScriptedTransport(envelope())
    traced = otel(tracer_provider=provider)(transport)

    resp = await traced(
        TransportRequest(url="http://api.test:8080/user/info?id=1", method="GET")
    )
    assert resp.status_code == 200

    spans = exporter.get_finished_spans()
    assert len(spans) == 1
    span = spans[0]
    assert span.name == "GET"
    assert span.kind == SpanKind.CLIENT
    assert span.attributes is not None
    assert span.attributes["http.request.method"] == "GET"
    assert span.attributes["url.full"] == "http://api.test:8080/user/info?id=1"
    assert span.attributes["server.address"] == "api.test"
    assert span.attributes["server.port"] == 8080
    assert span.attributes["http.response.status_code"] == 200
    assert "error.type" not in span.attributes
    assert span.status.status_code == StatusCode.UNSET


@pytest.mark.asyncio
async def test_trace_context_injected(
    provider: TracerProvider, exporter: InMemorySpanExporter
) -> None:
    transport = ScriptedTransport(envelope())
    traced = otel(tracer_provider=provider)(transport)

    await traced(
        TransportRequest(url="http://api.test/x", method="POST", headers={"A": "1"})
    )

    headers = transport.requests[0].headers
    assert headers["A"] == "1"
    assert "traceparent" in headers
    trace_id = format(exporter.get_finished_spans()[0].context.trace_id, "032x")
    assert trace_id in headers["traceparent"]


@pytest.mark.asyncio
async def test_trace_context_not_injected(provider: TracerProvider) -> None:
    transport = ScriptedTransport(envelope())
    traced = otel(tracer_provider=provider, propagate=False)(transport)

    await traced(TransportRequest(url="http://api.test/x", method="POST"))

    assert "traceparent" not in transport.requests[0].headers


@pytest.mark.asyncio
async def test_error_status(
    provider: TracerProvider, exporter: InMemorySpanExporter
) -> None:
    transport = ScriptedTransport(envelope(status=503))
    traced = otel(tracer_provider=provider)(transport)

    await traced(TransportRequest(url="http://api.test/x", method="GET"))

    span = exporter.get_finished_spans()[0]
    assert span.attributes is not None
    assert span.attributes["http.response.status_code"] == 503
    assert span.attributes["error.type"] == "503"
    assert span.status.status_code == StatusCode.ERROR


@pytest.mark.asyncio
async def test_exception_recorded(
    provider: TracerProvider, exporter: InMemorySpanExporter
) -> None:
    transport = ScriptedTransport(TransportError("ConnectError: refused"))
    traced = otel(tracer_provider=provider)(transport)

    with pytest.raises(TransportError):
        await traced(TransportRequest(url="http://api.test/x", method="GET"))

    span = exporter.get_finished_spans()[0]
    assert span.attributes is not None
    assert span.attributes["error.type"] == "TransportError"
    assert span.status.status_code == StatusCode.ERROR
    assert any(event.name == "exception" for event in span.events)


@pytest.mark.asyncio
async def test_span_per_reauth_attempt(
    provider: TracerProvider, exporter: InMemorySpanExporter
) -> None:
    transport = ScriptedTransport(envelope(code=401), envelope(code=0))
    dispatcher = RequestDispatcher(mock_settings(transport))
    dispatcher.use(otel(tracer_provider=provider))

    res = await dispatcher.execute("/user/info", verb="GET")

    assert res.code == 0
    spans = exporter.get_finished_spans()
    assert [s.name for s in spans] == ["GET", "GET"]
    assert all("traceparent" in r.headers for r in transport.requests)


# --- metrics ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_request_duration_recorded(
    provider: TracerProvider,
    meter_provider: MeterProvider,
    metric_reader: InMemoryMetricReader,
) -> None:
    transport = ScriptedTransport(envelope())
    traced = otel(tracer_provider=provider, meter_provider=meter_provider)(transport)

    await traced(TransportRequest(url="http://api.test/x", method="GET"))

    metric = _get_metric(metric_reader, "http.client.request.duration")
    assert metric.unit == "s"
    data_points = list(metric.data.data_points)
    assert len(data_points) == 1
    dp = data_points[0]
    assert dp.sum >= 0
    assert dp.count == 1
    assert dp.attributes["http.request.method"] == "GET"
    assert dp.attributes["server.address"] == "api.test"
    assert dp.attributes["http.response.status_code"] == 200
    assert "error.type" not in dp.attributes


@pytest.mark.asyncio
async def test_request_duration_on_exception(
    provider: TracerProvider,
    meter_provider: MeterProvider,
    metric_reader: InMemoryMetricReader,
) -> None:
    transport = ScriptedTransport(OSError("boom"))
    traced = otel(tracer_provider=provider, meter_provider=meter_provider)(transport)

    with pytest.raises(OSError, match="boom"):
        await traced(TransportRequest(url="http://api.test/x", method="GET"))

    metric = _get_metric(metric_reader, "http.client.request.duration")
    dp = next(iter(metric.data.data_points))
    assert dp.count == 1
    assert dp.attributes["error.type"] == "OSError"
    assert "http.response.status_code" not in dp.attributes
