from fastapi import FastAPI
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SimpleSpanProcessor, SpanExporter

from toolkit.config import Settings, settings


def setup_tracing(
    app: FastAPI, config: Settings = settings, exporter: SpanExporter | None = None
) -> TracerProvider | None:
    """Instrument ``app`` so every request runs inside a server span.

    Spans are batched to the OTLP collector at ``config.otlp_endpoint``; a
    caller-supplied ``exporter`` receives them synchronously instead. The
    active span is what gives upload, download and request log lines their
    ``trace_id``. Returns the provider, or None when tracing is disabled or
    ``app`` was already instrumented.
    """
    if not config.tracing_enabled or getattr(app.state, "tracer_provider", None) is not None:
        return None

    resource = Resource.create({SERVICE_NAME: config.tracing_service_name, SERVICE_VERSION: config.app_version})
    provider = TracerProvider(resource=resource)
    if exporter is None:
        otlp = OTLPSpanExporter(endpoint=config.otlp_endpoint, insecure=config.otlp_insecure)
        provider.add_span_processor(BatchSpanProcessor(otlp))
    else:
        provider.add_span_processor(SimpleSpanProcessor(exporter))

    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider)
    app.state.tracer_provider = provider
    return provider
