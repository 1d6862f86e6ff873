"""
OpenTelemetry tracing for the knowledge service.

Tracing is opt-in (OTEL_ENABLED=true). When disabled, get_tracer() returns
the OpenTelemetry no-op tracer so spans in the orchestrator and discovery
engine cost nothing.

Usage:
    from himind.core.tracing import setup_tracing, get_tracer, instrument_app

    setup_tracing()
    instrument_app(app)

    tracer = get_tracer(__name__)
    with tracer.start_as_current_span("processing.job") as span:
        span.set_attribute("job.id", job_id)

Environment Variables:
    OTEL_ENABLED: "true" to enable tracing (default: false)
    OTEL_SERVICE_NAME: Override service name
    OTEL_EXPORTER_OTLP_ENDPOINT: OTLP endpoint (console exporter otherwise)
"""

import logging
import os
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.resources import Resource, SERVICE_NAME
from opentelemetry.trace import Tracer
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from himind.core.config import settings

logger = logging.getLogger("HiMind.Tracing")

_tracer_provider: Optional[TracerProvider] = None
_is_initialized = False


def is_tracing_enabled() -> bool:
    return os.getenv("OTEL_ENABLED", "false").lower() == "true"


def setup_tracing(service_name: Optional[str] = None) -> Optional[TracerProvider]:
    """
    Initialize the global TracerProvider.

    Args:
        service_name: Optional override for the service name.

    Returns:
        The configured TracerProvider, or None if tracing is disabled.
    """
    global _tracer_provider, _is_initialized

    if _is_initialized:
        return _tracer_provider

    if not is_tracing_enabled():
        logger.info("OpenTelemetry tracing is disabled (set OTEL_ENABLED=true to enable)")
        _is_initialized = True
        return None

    effective_service_name = (
        service_name
        or os.getenv("OTEL_SERVICE_NAME")
        or settings.SERVICE_NAME
    )
    _tracer_provider = TracerProvider(
        resource=Resource.create({SERVICE_NAME: effective_service_name})
    )

    otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if otlp_endpoint:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        exporter = OTLPSpanExporter(endpoint=otlp_endpoint)
        logger.info(f"Using OTLP exporter with endpoint: {otlp_endpoint}")
    else:
        exporter = ConsoleSpanExporter()
        logger.info("Using Console exporter for trace output")

    _tracer_provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(_tracer_provider)

    _is_initialized = True
    logger.info(f"OpenTelemetry tracing initialized for service: {effective_service_name}")
    return _tracer_provider


def get_tracer(name: str) -> Tracer:
    """Get a tracer; a no-op tracer when tracing is disabled."""
    return trace.get_tracer(name)


def instrument_app(app) -> None:
    """Trace incoming FastAPI requests."""
    if not is_tracing_enabled():
        return
    FastAPIInstrumentor.instrument_app(app)
    logger.info("FastAPI instrumentation enabled")


def instrument_httpx() -> None:
    """Trace outbound httpx calls (the Supabase and OpenAI clients use httpx)."""
    if not is_tracing_enabled():
        return
    HTTPXClientInstrumentor().instrument()
    logger.info("httpx instrumentation enabled")


def shutdown_tracing() -> None:
    """Flush pending spans and reset the provider."""
    global _tracer_provider, _is_initialized

    if _tracer_provider is not None:
        _tracer_provider.shutdown()
        logger.info("OpenTelemetry tracing shut down")

    _tracer_provider = None
    _is_initialized = False


def get_current_trace_id() -> Optional[str]:
    """Current trace id as hex, or None outside an active span."""
    span_context = trace.get_current_span().get_span_context()
    if not span_context.is_valid:
        return None
    return format(span_context.trace_id, "032x")
