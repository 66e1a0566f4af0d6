"""Configuration du tracing OpenTelemetry.

Les traces sont exportées vers l'endpoint OTLP configuré; sans endpoint, rien n'est installé.
"""

from __future__ import annotations

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from scholarqa.core.settings import Settings


def setup_tracing(settings: Settings) -> bool:
    """Installe le provider de tracing si `OTLP_ENDPOINT` est configuré.

    Returns:
        bool: Vrai si un exporteur a été installé.
    """
    if not settings.OTLP_ENDPOINT:
        return False

    provider = TracerProvider(resource=Resource.create({"service.name": settings.APP_NAME}))
    processor = BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.OTLP_ENDPOINT, insecure=True))
    provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)
    return True


tracer = trace.get_tracer("scholarqa")
