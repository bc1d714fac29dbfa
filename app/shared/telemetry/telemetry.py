"""OpenTelemetry SDK setup (tracer provider, exporter, FastAPI instrumentation)."""

import logging

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from app.core.config import Settings

logger = logging.getLogger(__name__)


def setup_telemetry(settings: Settings, app: FastAPI) -> TracerProvider | None:
    """Install a global tracer provider and instrument the app.

    Exporter is "console", "otlp" (needs telemetry_otlp_endpoint) or "none".
    Returns None when telemetry is disabled or setup fails; the service keeps
    running with the no-op tracer in that case.
    """
    if not settings.telemetry_enabled:
        logger.info("Telemetry disabled")
        return None
    try:
        resource = Resource(
            attributes={
                SERVICE_NAME: settings.app_name,
                SERVICE_VERSION: settings.app_version,
                "deployment.environment": settings.telemetry_environment,
            }
        )
        provider = TracerProvider(
            resource=resource,
            sampler=TraceIdRatioBased(settings.telemetry_sample_rate),
        )
        exporter_type = settings.telemetry_exporter
        if exporter_type == "otlp" and settings.telemetry_otlp_endpoint:
            endpoint = settings.telemetry_otlp_endpoint
            provider.add_span_processor(
                BatchSpanProcessor(
                    OTLPSpanExporter(
                        endpoint=endpoint, insecure=endpoint.startswith("http://")
                    )
                )
            )
            logger.info("Using OTLP span exporter: %s", endpoint)
        elif exporter_type != "none":
            if exporter_type != "console":
                logger.warning(
                    "Unknown exporter type '%s', using console", exporter_type
                )
            provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        trace.set_tracer_provider(provider)
        FastAPIInstrumentor.instrument_app(
            app, tracer_provider=provider, excluded_urls="/health"
        )
        logger.info(
            "OpenTelemetry initialized: service=%s, exporter=%s",
            settings.app_name,
            exporter_type,
        )
        return provider
    except Exception as e:
        logger.exception("Failed to initialize telemetry: %s", e)
        return None
