"""Tracing setup for the SiteFlow API.

One process-wide ``TracerProvider`` carries the SiteFlow resource; exporters
are attached from settings. Workflow code only asks for a tracer by name and
stays a no-op until a provider is installed.
"""

from __future__ import annotations

from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from siteflow.core.config import Settings, get_settings


SERVICE_NAMESPACE = "siteflow"
CORRELATION_HEADERS = (b"x-correlation-id", b"x-request-id")

_provider: TracerProvider | None = None
_exporters_attached = False


def siteflow_resource(settings: Settings) -> Resource:
    return Resource.create(
        {
            "service.name": settings.otel_service_name,
            "service.namespace": SERVICE_NAMESPACE,
            "service.version": settings.app_version,
            "deployment.environment": settings.app_env,
        }
    )


def _provider_for(settings: Settings) -> TracerProvider:
    global _provider

    if _provider is None:
        _provider = TracerProvider(resource=siteflow_resource(settings))
        trace.set_tracer_provider(_provider)
    return _provider


def configure_tracing(settings: Settings) -> TracerProvider | None:
    """Install the provider and the configured exporters once; ``None`` when tracing is off."""
    global _exporters_attached

    if not settings.otel_enabled:
        return None

    provider = _provider_for(settings)
    if _exporters_attached:
        return provider

    if settings.otel_exporter_otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)))
    if settings.otel_console_exporter:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    _exporters_attached = True
    return provider


def setup_inmemory_otel() -> InMemorySpanExporter:
    exporter = InMemorySpanExporter()
    _provider_for(get_settings()).add_span_processor(SimpleSpanProcessor(exporter))
    return exporter


def get_tracer(name: str) -> trace.Tracer:
    return trace.get_tracer(name)


def correlation_request_hook(span: Any, scope: dict[str, Any]) -> None:
    """Tag the FastAPI server span with the inbound correlation id."""
    if span is None or not span.is_recording():
        return
    headers = dict(scope.get("headers", []))
    for header in CORRELATION_HEADERS:
        raw = headers.get(header)
        if raw:
            span.set_attribute("correlation_id", raw.decode("utf-8"))
            return
