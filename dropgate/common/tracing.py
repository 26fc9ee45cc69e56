"""OpenTelemetry wiring for the relay app.

Tracing stays off unless an OTLP collector endpoint is configured.
"""

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

from dropgate.common.config import settings


UNTRACED_URLS = "health,metrics"


def setup_tracing(app: FastAPI, service_name: str, endpoint: str | None = None) -> TracerProvider | None:
    """Export request spans for `app` to the OTLP HTTP collector, if any."""

    endpoint = endpoint or settings.otel_exporter_otlp_endpoint
    if not endpoint:
        return None

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider, excluded_urls=UNTRACED_URLS)
    return provider
