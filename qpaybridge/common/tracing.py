"""OpenTelemetry wiring: request spans for the API, client spans for QPay calls."""

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter

from qpaybridge.common.config import settings


# Resolves to a no-op tracer until `configure_tracing` installs a provider.
tracer = trace.get_tracer("qpaybridge")


def configure_tracing(app: FastAPI) -> bool:
    """Export spans over OTLP HTTP and instrument `app`; no-op when disabled."""

    if not settings.otel_enabled:
        return False
    provider = TracerProvider(resource=Resource.create({"service.name": settings.service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)))
    trace.set_tracer_provider(provider)
    FastAPIInstrumentor.instrument_app(app)
    return True
