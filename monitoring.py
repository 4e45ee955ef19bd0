"""Monitoring and observability setup.

Tracing and metrics are exported over OTLP when ``TELEMETRY_ENABLED`` is set.
Otherwise the OpenTelemetry API's no-op providers stay in place, so the
instruments below can be used unconditionally by the rest of the service.

Exemplars are attached automatically to histogram metrics recorded inside an
active span (SDK 1.28.0+), so ``order_amount_histogram`` links large orders
back to the checkout trace that produced them.
"""
import logging
from opentelemetry import trace, metrics
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter

from config import (
    OTEL_EXPORTER_OTLP_ENDPOINT,
    PROFILING_ENABLED,
    PYROSCOPE_SERVER,
    SERVICE_NAME,
    TELEMETRY_ENABLED,
)

logger = logging.getLogger(__name__)


def init_tracing() -> trace.Tracer:
    """
    Initialize OpenTelemetry tracing.

    Returns:
        Tracer instance
    """
    if not TELEMETRY_ENABLED:
        return trace.get_tracer(__name__)

    resource = Resource.create({"service.name": SERVICE_NAME})

    tracer_provider = TracerProvider(resource=resource)
    otlp_span_exporter = OTLPSpanExporter(
        endpoint=OTEL_EXPORTER_OTLP_ENDPOINT,
        insecure=True
    )
    tracer_provider.add_span_processor(BatchSpanProcessor(otlp_span_exporter))
    trace.set_tracer_provider(tracer_provider)

    logger.info(f"Tracing initialized with endpoint: {OTEL_EXPORTER_OTLP_ENDPOINT}")

    return trace.get_tracer(__name__)


def init_metrics() -> metrics.Meter:
    """
    Initialize OpenTelemetry metrics.

    Returns:
        Meter instance
    """
    if not TELEMETRY_ENABLED:
        return metrics.get_meter(__name__)

    resource = Resource.create({"service.name": SERVICE_NAME})

    otlp_metric_exporter = OTLPMetricExporter(
        endpoint=OTEL_EXPORTER_OTLP_ENDPOINT,
        insecure=True
    )
    otlp_metric_reader = PeriodicExportingMetricReader(
        otlp_metric_exporter,
        export_interval_millis=5000
    )

    meter_provider = MeterProvider(
        resource=resource,
        metric_readers=[otlp_metric_reader]
    )
    metrics.set_meter_provider(meter_provider)

    logger.info("Metrics initialized with OTLP exporter")

    return metrics.get_meter(__name__)


def init_profiling() -> None:
    """Initialize Pyroscope profiling."""
    if not PROFILING_ENABLED:
        return

    import pyroscope

    try:
        pyroscope.configure(
            application_name=SERVICE_NAME,
            server_address=PYROSCOPE_SERVER,
            tags={"env": "demo"}
        )
        logger.info(f"Profiling initialized with server: {PYROSCOPE_SERVER}")
    except Exception as e:
        logger.warning(f"Failed to initialize profiling: {e}")


# Initialize tracer and meter
tracer = init_tracing()
meter = init_metrics()

# Order workflow metrics
orders_placed_counter = meter.create_counter(
    "marketplace.orders.placed",
    description="Total number of orders committed",
    unit="1"
)

order_failures_counter = meter.create_counter(
    "marketplace.orders.failed",
    description="Order placements rejected or rolled back, by reason",
    unit="1"
)

order_amount_histogram = meter.create_histogram(
    "marketplace.orders.amount",
    description="Order total amount",
    unit="1"
)

order_status_changes_counter = meter.create_counter(
    "marketplace.orders.status_changes",
    description="Order status updates, by target status",
    unit="1"
)

orders_cancelled_counter = meter.create_counter(
    "marketplace.orders.cancelled",
    description="Orders cancelled with stock released",
    unit="1"
)

# Inventory metrics
stock_reserved_counter = meter.create_counter(
    "marketplace.inventory.reserved_units",
    description="Units of stock reserved by order placement",
    unit="1"
)

stock_released_counter = meter.create_counter(
    "marketplace.inventory.released_units",
    description="Units of stock released by cancellation",
    unit="1"
)

# Payment metrics
payments_recorded_counter = meter.create_counter(
    "marketplace.payments.recorded",
    description="Payment records created, by method and status",
    unit="1"
)

# Security monitoring metrics
auth_failures_counter = meter.create_counter(
    "marketplace.auth.failures",
    description="Total number of authentication failures",
    unit="1"
)

auth_attempts_counter = meter.create_counter(
    "marketplace.auth.attempts",
    description="Total number of authentication attempts",
    unit="1"
)

authorization_denied_counter = meter.create_counter(
    "marketplace.authz.denied",
    description="Requests rejected because the caller lacked the right",
    unit="1"
)

rate_limit_exceeded_counter = meter.create_counter(
    "marketplace.rate_limit.exceeded",
    description="Total number of rate limit violations",
    unit="1"
)

suspicious_activity_counter = meter.create_counter(
    "marketplace.security.suspicious_activity",
    description="Total number of suspicious activity detections",
    unit="1"
)
