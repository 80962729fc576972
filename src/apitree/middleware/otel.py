"""OpenTelemetry tracing and metrics middleware for transports.

Creates HTTP client spans and metrics with semantic conventions for each
transport call. Re-auth retries show up as separate spans under the caller's
current span.

Install with: uv add "apitree[otel]"
"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

if TYPE_CHECKING:
    from apitree.transport import (
        Transport,
        TransportMiddleware,
        TransportRequest,
        TransportResponse,
    )

try:
    from opentelemetry import metrics, trace
    from opentelemetry.propagate import inject
    from opentelemetry.trace import SpanKind, StatusCode, TracerProvider
except ImportError as e:
    msg = (
        "OpenTelemetry middleware requires the 'otel' extra. "
        "Install with: uv add 'apitree[otel]'"
    )
    raise ImportError(msg) from e

_DURATION_BUCKETS = (
    0.005,
    0.01,
    0.025,
    0.05,
    0.075,
    0.1,
    0.25,
    0.5,
    0.75,
    1.0,
    2.5,
    5.0,
    7.5,
    10.0,
)


def otel(
    *,
    tracer_provider: TracerProvider | None = None,
    meter_provider: metrics.MeterProvider | None = None,
    propagate: bool = True,
) -> TransportMiddleware:
    """Create OpenTelemetry tracing and metrics transport middleware.

    Creates a client span per transport call and injects the trace context
    into the outgoing headers (e.g. ``traceparent``) for distributed tracing.
    Only depends on ``opentelemetry-api``; users bring their own SDK and
    exporters.

    Metrics emitted:
        - ``http.client.request.duration`` (histogram, seconds)

    Args:
        tracer_provider: Optional TracerProvider. If None, uses the global provider.
        meter_provider: Optional MeterProvider. If None, uses the global provider.
        propagate: Inject trace context headers into the request.

    Returns:
        Middleware function that wraps transports with tracing and metrics.

    Example:
        dispatcher_of(api).use(otel())
    """
    tracer = trace.get_tracer(
        "apitree",
        tracer_provider=tracer_provider,
    )
    meter = metrics.get_meter(
        "apitree",
        meter_provider=meter_provider,
    )
    duration_histogram = meter.create_histogram(
        "http.client.request.duration",
        unit="s",
        description="Duration of HTTP client requests.",
        explicit_bucket_boundaries_advisory=_DURATION_BUCKETS,
    )

    def middleware(transport: Transport) -> Transport:
        async def traced_transport(request: TransportRequest) -> TransportResponse:
            method = request.method
            parts = urlsplit(request.url)

            # Span attributes (stable HTTP semantic conventions)
            attributes: dict[str, str | int] = {
                "http.request.method": method,
                "url.full": request.url,
            }
            if parts.hostname:
                attributes["server.address"] = parts.hostname
            if parts.port is not None:
                attributes["server.port"] = parts.port

            metric_attrs: dict[str, str | int] = {"http.request.method": method}
            if parts.hostname:
                metric_attrs["server.address"] = parts.hostname

            start = time.perf_counter()
            with tracer.start_as_current_span(
                method,
                kind=SpanKind.CLIENT,
                attributes=attributes,
                record_exception=True,
                set_status_on_exception=True,
            ) as span:
                if propagate:
                    headers = dict(request.headers)
                    inject(headers)
                    request = replace(request, headers=headers)
                try:
                    response = await transport(request)
                except Exception as exc:
                    error_type = type(exc).__qualname__
                    span.set_attribute("error.type", error_type)
                    metric_attrs["error.type"] = error_type
                    duration_histogram.record(
                        time.perf_counter() - start, metric_attrs
                    )
                    raise

                status = response.status_code
                span.set_attribute("http.response.status_code", status)
                metric_attrs["http.response.status_code"] = status
                if status >= 400:
                    span.set_attribute("error.type", str(status))
                    metric_attrs["error.type"] = str(status)
                    span.set_status(StatusCode.ERROR)
                duration_histogram.record(time.perf_counter() - start, metric_attrs)
                return response

        return traced_transport

    return middleware
