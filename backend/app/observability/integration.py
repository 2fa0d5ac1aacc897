"""
OpenTelemetry Integration for the Event Status service.
Configures tracing and metrics exporters plus storage instrumentation.
"""

import logging
import os
import time
from typing import Dict, Optional

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)

LOCAL_COLLECTOR_ENDPOINT = "http://localhost:4317"


class ObservabilityIntegration:
    """
    Manages OpenTelemetry setup for the event status service.
    Wires traces, metrics, and instrumentation of the lookup storage.
    """

    def __init__(
        self,
        service_name: str = "event-status",
        service_version: str = "1.0.0",
        environment: str = "production",
    ):
        self.service_name = service_name
        self.service_version = service_version
        self.environment = environment
        self.is_initialized = False

    def initialize(self) -> None:
        """
        Initialize OpenTelemetry providers and instrumentation.
        Must be called once during process startup.
        """
        if self.is_initialized:
            logger.warning("ObservabilityIntegration already initialized")
            return

        try:
            resource = Resource.create({
                "service.name": self.service_name,
                "service.version": self.service_version,
                "service.namespace": "groups",
                "deployment.environment": self.environment,
            })

            self._setup_tracing(resource)
            self._setup_metrics(resource)
            self._setup_instrumentation()

            self.is_initialized = True
            logger.info(f"OpenTelemetry initialized for {self.service_name} ({self.environment})")

        except Exception as e:
            logger.error(f"Failed to initialize OpenTelemetry: {e}", exc_info=True)
            raise

    def _setup_tracing(self, resource: Resource) -> None:
        """Setup span export to the configured OTLP endpoint."""
        endpoint = self._resolve_endpoint("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")
        if endpoint is None:
            logger.warning("No traces endpoint configured, tracing export disabled")
            return

        if self.environment == "production":
            span_exporter = OTLPSpanExporter(endpoint=endpoint, headers=self._get_export_headers())
        else:
            span_exporter = OTLPSpanExporter(endpoint=endpoint, insecure=True)

        tracer_provider = TracerProvider(resource=resource)
        trace.set_tracer_provider(tracer_provider)

        tracer_provider.add_span_processor(
            BatchSpanProcessor(
                span_exporter=span_exporter,
                max_queue_size=512,
                max_export_batch_size=64,
                export_timeout_millis=5000,
            )
        )

    def _setup_metrics(self, resource: Resource) -> None:
        """Setup periodic metric export to the configured OTLP endpoint."""
        endpoint = self._resolve_endpoint("OTEL_EXPORTER_OTLP_METRICS_ENDPOINT")
        if endpoint is None:
            logger.warning("No metrics endpoint configured, metrics export disabled")
            return

        if self.environment == "production":
            metric_exporter = OTLPMetricExporter(endpoint=endpoint, headers=self._get_export_headers())
        else:
            metric_exporter = OTLPMetricExporter(endpoint=endpoint, insecure=True)

        metric_reader = PeriodicExportingMetricReader(
            exporter=metric_exporter,
            export_interval_millis=30000,
            export_timeout_millis=5000,
        )
        metrics.set_meter_provider(
            MeterProvider(resource=resource, metric_readers=[metric_reader])
        )

    def _setup_instrumentation(self) -> None:
        """Instrument the storage clients used by the lookup repositories."""
        try:
            RedisInstrumentor().instrument(
                tracer_provider=trace.get_tracer_provider(),
            )
            SQLAlchemyInstrumentor().instrument(
                tracer_provider=trace.get_tracer_provider(),
                enable_commenter=True,
            )
            logger.info("Auto-instrumentation enabled for redis, sqlalchemy")

        except Exception as e:
            logger.error(f"Failed to setup auto-instrumentation: {e}")

    def _resolve_endpoint(self, env_var: str) -> Optional[str]:
        """Production requires an explicit endpoint; other environments default to a local collector."""
        endpoint = os.getenv(env_var)
        if endpoint:
            return endpoint
        if self.environment == "production":
            return None
        return LOCAL_COLLECTOR_ENDPOINT

    def _get_export_headers(self) -> Dict[str, str]:
        """Get auth headers for the hosted telemetry backend."""
        headers = {}

        connection_string = os.getenv("APPLICATIONINSIGHTS_CONNECTION_STRING")
        if connection_string:
            headers["Authorization"] = f"Bearer {connection_string}"

        return headers

    def create_tracer(self, name: str) -> trace.Tracer:
        """Create a tracer for a component (e.g. "groups.event_status")."""
        return trace.get_tracer(name, self.service_version)

    def create_meter(self, name: str) -> metrics.Meter:
        """Create a meter for a component (e.g. "groups.event_status")."""
        return metrics.get_meter(name, self.service_version)

    def shutdown(self) -> None:
        """
        Flush and shutdown providers.
        Should be called during process shutdown.
        """
        try:
            tracer_provider = trace.get_tracer_provider()
            if hasattr(tracer_provider, 'shutdown'):
                tracer_provider.shutdown()

            meter_provider = metrics.get_meter_provider()
            if hasattr(meter_provider, 'shutdown'):
                meter_provider.shutdown()

            logger.info("OpenTelemetry shutdown completed")

        except Exception as e:
            logger.error(f"Error during OpenTelemetry shutdown: {e}")


_global_integration: Optional[ObservabilityIntegration] = None


def initialize_observability(
    service_name: str = "event-status",
    service_version: str = "1.0.0",
    environment: Optional[str] = None,
) -> ObservabilityIntegration:
    """
    Initialize the process-wide observability integration.

    Args:
        service_name: Name of the service
        service_version: Version of the service
        environment: Deployment environment (defaults to DEPLOY_ENV env var)

    Returns:
        Configured ObservabilityIntegration instance
    """
    global _global_integration

    if _global_integration is not None:
        logger.warning("Observability already initialized globally")
        return _global_integration

    if environment is None:
        environment = os.getenv("DEPLOY_ENV", "local")

    integration = ObservabilityIntegration(
        service_name=service_name,
        service_version=service_version,
        environment=environment,
    )
    integration.initialize()

    _global_integration = integration
    return _global_integration


def get_global_integration() -> Optional[ObservabilityIntegration]:
    """Get the process-wide observability integration, if initialized."""
    return _global_integration


def shutdown_observability() -> None:
    """Shutdown the process-wide observability integration."""
    global _global_integration

    if _global_integration is not None:
        _global_integration.shutdown()
        _global_integration = None


def get_tracer(name: str) -> trace.Tracer:
    """Get a tracer for the given component name."""
    integration = get_global_integration()
    if integration:
        return integration.create_tracer(name)
    return trace.get_tracer(name)


def get_meter(name: str) -> metrics.Meter:
    """Get a meter for the given component name."""
    integration = get_global_integration()
    if integration:
        return integration.create_meter(name)
    return metrics.get_meter(name)


class TrackedOperation:
    """
    Context manager for tracking operation duration and creating spans.
    Exceptions are recorded on the span and always re-raised.
    """

    def __init__(
        self,
        operation_name: str,
        tracer: Optional[trace.Tracer] = None,
        attributes: Optional[Dict[str, str]] = None,
    ):
        self.operation_name = operation_name
        self.tracer = tracer or get_tracer("groups.operations")
        self.attributes = attributes or {}
        self.span = None
        self.start_time = None
        self.end_time = None

    @property
    def duration_ms(self) -> float:
        """Elapsed time so far, fixed once the operation exits."""
        if self.start_time is None:
            return 0.0
        end_time = self.end_time if self.end_time is not None else time.perf_counter()
        return (end_time - self.start_time) * 1000

    def __enter__(self):
        self.span = self.tracer.start_span(
            self.operation_name,
            attributes=self.attributes,
        )
        self.start_time = time.perf_counter()
        self.end_time = None
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.perf_counter()

        if self.span:
            self.span.set_attribute("operation.duration_ms", self.duration_ms)

            if exc_type is not None:
                self.span.set_status(trace.Status(trace.StatusCode.ERROR, str(exc_val)))
                self.span.record_exception(exc_val)

            self.span.end()
        return False

    def add_attribute(self, key: str, value: str) -> None:
        """Add attribute to the current span."""
        if self.span:
            self.span.set_attribute(key, value)
