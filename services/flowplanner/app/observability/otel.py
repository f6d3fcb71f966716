"""Tracing setup for planning and execution spans."""
from __future__ import annotations

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from ..config import FlowPlannerSettings, get_settings


def traces_endpoint(base: str) -> str:
    return f"{base.rstrip('/')}/v1/traces"


def configure_telemetry(settings: FlowPlannerSettings | None = None) -> TracerProvider:
    """Install a tracer provider tagged with service and environment.

    ``flowplanner.plan``, ``flowplanner.execute_flow`` and ``flowplanner.node.attempt``
    spans are exported over OTLP/HTTP only when an endpoint is configured.
    """
    settings = settings or get_settings()
    observability = settings.observability
    provider = TracerProvider(
        resource=Resource(
            attributes={SERVICE_NAME: observability.otel_service_name, "deployment.environment": settings.environment}
        )
    )
    trace.set_tracer_provider(provider)

    if observability.otel_exporter_otlp_endpoint:
        exporter = OTLPSpanExporter(endpoint=traces_endpoint(observability.otel_exporter_otlp_endpoint))
        provider.add_span_processor(BatchSpanProcessor(exporter))

    return provider


__all__ = ["configure_telemetry", "traces_endpoint"]
