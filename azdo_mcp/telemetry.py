"""OpenTelemetry tracing setup for azdo-mcp."""

import logging
import os
from contextlib import contextmanager

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.requests import RequestsInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from .config import TelemetryConfig

logger = logging.getLogger(__name__)


class TelemetryManager:
    """
    Installs the process-wide tracer provider.

    Spans are created everywhere through ``trace.get_tracer(__name__)``; this
    class only decides where they go. Spans are exported over OTLP/HTTP when
    ``OTEL_EXPORTER_OTLP_TRACES_ENDPOINT`` is set and dropped otherwise.
    """

    def __init__(self, config: TelemetryConfig):
        self.config = config
        self.tracer: trace.Tracer | None = None
        self._initialized = False

        if config.enabled:
            self._setup_tracing()

    def _setup_tracing(self):
        try:
            resource = Resource(
                attributes={
                    SERVICE_NAME: self.config.service_name,
                    SERVICE_VERSION: self.config.service_version,
                    "process.pid": os.getpid(),
                }
            )
            tracer_provider = TracerProvider(
                resource=resource, sampler=TraceIdRatioBased(self.config.trace_sampling_rate)
            )

            otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")
            if otlp_endpoint:
                tracer_provider.add_span_processor(
                    BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint))
                )
                logger.info(f"Exporting traces to {otlp_endpoint}")

            trace.set_tracer_provider(tracer_provider)
            RequestsInstrumentor().instrument()

            self.tracer = trace.get_tracer(__name__)
            self._initialized = True
            logger.info("Telemetry initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize telemetry: {e}")
            self.config.enabled = False

    @contextmanager
    def trace_api_call(self, operation: str, **attributes):
        """
        Context manager for tracing API calls.

        Args:
            operation: Name of the operation
            **attributes: Additional span attributes
        """
        tracer = self.tracer or trace.get_tracer(__name__)
        with tracer.start_as_current_span(f"azdo_{operation}") as span:
            span.set_attribute("azdo.operation", operation)
            for key, value in attributes.items():
                if value is not None:
                    span.set_attribute(key, value)
            try:
                yield span
            except Exception as e:
                span.record_exception(e)
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                raise

    def shutdown(self):
        """Flush and shut down the tracer provider."""
        if not self._initialized:
            return

        try:
            provider = trace.get_tracer_provider()
            if hasattr(provider, "shutdown"):
                provider.shutdown()
            RequestsInstrumentor().uninstrument()
            logger.info("Telemetry shutdown complete")
        except Exception as e:
            logger.error(f"Error during telemetry shutdown: {e}")


_telemetry_manager: TelemetryManager | None = None


def initialize_telemetry(config: TelemetryConfig) -> TelemetryManager:
    """Initialize the global telemetry manager once per process."""
    global _telemetry_manager
    if _telemetry_manager is None:
        _telemetry_manager = TelemetryManager(config)
    return _telemetry_manager


def get_telemetry_manager() -> TelemetryManager | None:
    """Get the global telemetry manager, if initialized."""
    return _telemetry_manager


def shutdown_telemetry():
    """Shutdown the global telemetry manager."""
    global _telemetry_manager
    if _telemetry_manager:
        _telemetry_manager.shutdown()
        _telemetry_manager = None
