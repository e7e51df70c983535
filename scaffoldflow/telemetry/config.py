"""Telemetry configuration and initialization.

This module handles:
- Reading telemetry configuration from environment variables
- Setting up Python logging with appropriate levels
- Initializing the OpenTelemetry tracer provider and its exporter
"""

import logging
import os
import sys
from dataclasses import dataclass
from enum import Enum

from opentelemetry import trace
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

logger = logging.getLogger(__name__)

# Global state
_telemetry_initialized = False
_tracer_provider: TracerProvider | None = None


class ExporterType(Enum):
    """Supported trace exporters."""

    OTLP = "otlp"
    CONSOLE = "console"
    NONE = "none"


@dataclass
class TelemetryConfig:
    """Configuration for logging and tracing.

    All values are read from environment variables with sensible defaults.
    """

    # Logging
    log_level: str = "INFO"

    # OpenTelemetry
    service_name: str = "scaffoldflow"
    otlp_endpoint: str = "http://localhost:4317"
    traces_exporter: ExporterType = ExporterType.NONE
    otel_disabled: bool = False

    @classmethod
    def from_env(cls) -> "TelemetryConfig":
        """Create config from environment variables."""
        exporter_str = os.getenv("OTEL_TRACES_EXPORTER", "none").lower()
        try:
            exporter = ExporterType(exporter_str)
        except ValueError:
            logger.warning(f"Unknown exporter type '{exporter_str}', traces will not be exported")
            exporter = ExporterType.NONE

        otel_disabled = os.getenv("OTEL_SDK_DISABLED", "false").lower() in ("true", "1", "yes")

        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            service_name=os.getenv("OTEL_SERVICE_NAME", "scaffoldflow"),
            otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "http://localhost:4317"),
            traces_exporter=exporter,
            otel_disabled=otel_disabled,
        )


def _setup_logging(config: TelemetryConfig) -> None:
    """Configure the root logger with a console handler."""
    level = logging.getLevelName(config.log_level)
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root_logger.addHandler(console_handler)

    logging.getLogger("scaffoldflow").setLevel(level)

    # Reduce noise from third-party libraries unless in DEBUG mode
    if level > logging.DEBUG:
        logging.getLogger("burr").setLevel(logging.WARNING)
        logging.getLogger("opentelemetry").setLevel(logging.WARNING)

    logger.info(f"Logging configured: level={config.log_level}")


def _setup_tracing(config: TelemetryConfig) -> TracerProvider | None:
    """Install a global tracer provider with the configured exporter."""
    if config.otel_disabled:
        logger.info("OpenTelemetry disabled via OTEL_SDK_DISABLED")
        return None

    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: config.service_name}))

    if config.traces_exporter == ExporterType.OTLP:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=config.otlp_endpoint))
        )
        logger.info(f"OTLP exporter configured: endpoint={config.otlp_endpoint}")

    elif config.traces_exporter == ExporterType.CONSOLE:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
        logger.info("Console exporter configured")

    # ExporterType.NONE - spans are created but not exported

    trace.set_tracer_provider(provider)
    return provider


def init_telemetry(config: TelemetryConfig | None = None) -> None:
    """Initialize logging and tracing.

    Call once at application startup, before running workflows.

    Args:
        config: Optional configuration. If not provided, reads from environment.
    """
    global _telemetry_initialized, _tracer_provider

    if _telemetry_initialized:
        logger.debug("Telemetry already initialized, skipping")
        return

    if config is None:
        config = TelemetryConfig.from_env()

    _setup_logging(config)
    _tracer_provider = _setup_tracing(config)

    _telemetry_initialized = True
    logger.info(
        f"Telemetry initialized: service={config.service_name}, "
        f"exporter={config.traces_exporter.value}, "
        f"otel_disabled={config.otel_disabled}"
    )


def shutdown_telemetry() -> None:
    """Flush pending spans and shut the tracer provider down."""
    global _telemetry_initialized, _tracer_provider

    if not _telemetry_initialized:
        return

    if _tracer_provider is not None:
        _tracer_provider.shutdown()

    _telemetry_initialized = False
    _tracer_provider = None
    logger.info("Telemetry shutdown complete")


def is_telemetry_enabled() -> bool:
    """Check if telemetry is initialized and tracing is enabled."""
    return _telemetry_initialized and _tracer_provider is not None
