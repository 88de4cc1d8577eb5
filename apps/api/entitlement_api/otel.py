from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    ConsoleSpanExporter,
    SimpleSpanProcessor,
)
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from entitlement_api.context import bound_entitlement, get_correlation_id
from entitlement_api.core.config import Settings, get_settings


_exporters_attached = False
_provider: TracerProvider | None = None
_tracer = trace.get_tracer("entitlement_api.entitlement")


def _provider_for(service_name: str, settings: Settings) -> TracerProvider:
    global _provider

    if _provider is None:
        resource = Resource.create({"service.name": service_name, "service.version": settings.app_version})
        _provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(_provider)
    return _provider


def setup_otel(service_name: str, settings: Settings | None = None) -> TracerProvider | None:
    """Install the tracer provider and the exporters configured in settings.

    Safe to call more than once; exporters are only attached the first time.
    """
    global _exporters_attached

    settings = settings or get_settings()
    if not settings.otel_enabled:
        return None

    provider = _provider_for(service_name, settings)
    if _exporters_attached:
        return provider

    if settings.otel_exporter_otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint)))
    if settings.otel_console_exporter:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    _exporters_attached = True
    return provider


def setup_inmemory_otel(service_name: str = "entitlement-api") -> InMemorySpanExporter:
    provider = _provider_for(service_name, get_settings())
    exporter = InMemorySpanExporter()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return exporter


@contextmanager
def entitlement_span(name: str, entitlement_id: uuid.UUID, **attributes: Any) -> Iterator[trace.Span]:
    """Span around work on one entitlement, with logs inside it tagged alike."""
    with _tracer.start_as_current_span(name) as span, bound_entitlement(entitlement_id) as bound_id:
        span.set_attribute("entitlement_id", bound_id)
        correlation_id = get_correlation_id()
        if correlation_id:
            span.set_attribute("correlation_id", correlation_id)
        for key, value in attributes.items():
            span.set_attribute(key, value)
        yield span


def get_fastapi_server_request_hook():
    def server_request_hook(span, scope: dict[str, Any]) -> None:  # type: ignore[no-untyped-def]
        if span is None or not span.is_recording():
            return
        headers = dict(scope.get("headers", []))
        for header in (b"x-correlation-id", b"x-request-id"):
            raw = headers.get(header)
            if raw:
                span.set_attribute("correlation_id", raw.decode("utf-8").strip()[:128])
                return

    return server_request_hook
