"""Telemetry and observability for scaffoldflow.

Logging setup plus OpenTelemetry workflow and phase spans.

Usage:
    from scaffoldflow.telemetry import init_telemetry, phase_span

    init_telemetry()

    with phase_span("migration", "Migration") as span:
        span.set_attribute("phase.outcome", "success")

Environment Variables:
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR) - default: INFO
    OTEL_EXPORTER_OTLP_ENDPOINT: OTLP collector endpoint - default: http://localhost:4317
    OTEL_SERVICE_NAME: Service name for traces - default: scaffoldflow
    OTEL_TRACES_EXPORTER: Exporter type (otlp, console, none) - default: none
    OTEL_SDK_DISABLED: Disable all tracing - default: false
"""

from .config import (
    ExporterType,
    TelemetryConfig,
    init_telemetry,
    is_telemetry_enabled,
    shutdown_telemetry,
)
from .spans import (
    get_tracer,
    phase_span,
    record_error,
    workflow_span,
)

__all__ = [
    # Configuration
    "ExporterType",
    "TelemetryConfig",
    "init_telemetry",
    "shutdown_telemetry",
    "is_telemetry_enabled",
    # Spans
    "get_tracer",
    "workflow_span",
    "phase_span",
    "record_error",
]
