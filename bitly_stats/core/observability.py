"""Observability setup: logging, tracing, metrics, and error tracking."""

import logging
import time
import uuid
from contextvars import ContextVar

import sentry_sdk
import structlog
from fastapi import FastAPI, Request, Response
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import (
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    push_to_gateway,
)
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from bitly_stats.core.config import get_settings

settings = get_settings()

# Context variable for request ID (accessible throughout the request or run)
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

# Prometheus metrics - HTTP trigger
REQUEST_COUNT = Counter(
    "bitly_sync_http_requests_total",
    "Total HTTP requests to the sync trigger",
    ["method", "endpoint", "status_code"],
)

REQUEST_LATENCY = Histogram(
    "bitly_sync_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

# Prometheus metrics - Runs
SYNC_RUNS = Counter(
    "bitly_sync_runs_total",
    "Total sync runs",
    ["status"],  # success, failed
)

SYNC_DURATION = Histogram(
    "bitly_sync_run_duration_seconds",
    "Time to complete a sync run",
    buckets=[1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0, 600.0],
)

SYNC_RUNNING = Gauge(
    "bitly_sync_running",
    "Whether a sync run is in progress (1) or not (0)",
)

# Prometheus metrics - Links
LINKS_PROCESSED = Counter(
    "bitly_sync_links_total",
    "Links handled by the reconciler",
    ["outcome"],  # persisted, skipped, failed
)

# Prometheus metrics - Bitly API
BITLY_REQUESTS = Counter(
    "bitly_sync_api_requests_total",
    "Requests made to the Bitly API",
    ["endpoint", "status_code"],
)

BITLY_REQUEST_LATENCY = Histogram(
    "bitly_sync_api_request_duration_seconds",
    "Bitly API request latency in seconds",
    ["endpoint"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


def get_request_id() -> str | None:
    """Get the current request ID from context."""
    return request_id_ctx.get()


def bind_request_id(request_id: str | None) -> str:
    """Bind a request ID to the context and to structlog.

    A new ID is generated when the trigger did not provide one.
    """
    request_id = request_id or str(uuid.uuid4())
    request_id_ctx.set(request_id)
    structlog.contextvars.bind_contextvars(request_id=request_id)
    return request_id


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware to add a unique request ID to each request.

    The request ID is:
    - Generated if not provided in X-Request-ID header
    - Stored in context variable for access throughout the request
    - Added to response headers
    - Bound to structlog context for all log messages
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        token = request_id_ctx.set(request_id)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_ctx.reset(token)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware to log all requests with timing information."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        logger = structlog.get_logger()
        start_time = time.perf_counter()

        logger.info(
            "Request started",
            client_ip=request.client.host if request.client else None,
        )

        response = await call_next(request)

        duration = time.perf_counter() - start_time

        logger.info(
            "Request completed",
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )

        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=request.url.path,
            status_code=response.status_code,
        ).inc()

        REQUEST_LATENCY.labels(
            method=request.method,
            endpoint=request.url.path,
        ).observe(duration)

        return response


def configure_structlog() -> None:
    """Configure structlog for JSON logging with context variables."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Configure standard logging to use structlog
    logging.basicConfig(
        format="%(message)s",
        level=logging.INFO if not settings.debug else logging.DEBUG,
    )


def setup_tracer_provider() -> bool:
    """Install an OTLP-exporting tracer provider if an endpoint is configured.

    Returns:
        True when tracing was configured.
    """
    if not settings.otlp_endpoint:
        structlog.get_logger().info("OpenTelemetry disabled (no OTLP endpoint configured)")
        return False

    resource = Resource(attributes={
        SERVICE_NAME: "bitly-stats-sync",
    })
    provider = TracerProvider(resource=resource)

    otlp_exporter = OTLPSpanExporter(
        endpoint=settings.otlp_endpoint,
        insecure=True,  # Set to False in production with TLS
    )
    provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

    trace.set_tracer_provider(provider)

    structlog.get_logger().info(
        "OpenTelemetry configured",
        otlp_endpoint=settings.otlp_endpoint,
    )
    return True


def setup_opentelemetry(app: FastAPI) -> None:
    """Set up OpenTelemetry tracing for the HTTP trigger."""
    if setup_tracer_provider():
        FastAPIInstrumentor.instrument_app(app)


def get_tracer() -> trace.Tracer:
    """Tracer for spans around sync runs."""
    return trace.get_tracer("bitly_stats")


def setup_sentry(with_fastapi: bool = False) -> None:
    """Set up Sentry for error tracking."""
    if not settings.sentry_dsn:
        structlog.get_logger().info("Sentry disabled (no DSN configured)")
        return

    integrations = []
    if with_fastapi:
        integrations = [
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ]

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment="development" if settings.debug else "production",
        traces_sample_rate=0.1,
        integrations=integrations,
        # Don't send PII
        send_default_pii=False,
    )

    structlog.get_logger().info("Sentry configured")


def get_prometheus_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def push_metrics() -> None:
    """Push metrics to a Prometheus Pushgateway, if one is configured.

    A batch run does not live long enough to be scraped.
    """
    if not settings.pushgateway_url:
        return

    try:
        push_to_gateway(
            settings.pushgateway_url,
            job="bitly_stats_sync",
            registry=REGISTRY,
        )
    except OSError as e:
        structlog.get_logger().warning(
            "Failed to push metrics",
            pushgateway_url=settings.pushgateway_url,
            error=str(e),
        )


def setup_observability(app: FastAPI) -> None:
    """Set up all observability components for the HTTP trigger.

    Call this function during app initialization to configure:
    - Structured logging with request context
    - OpenTelemetry tracing
    - Sentry error tracking
    - Prometheus metrics endpoint
    """
    configure_structlog()

    setup_sentry(with_fastapi=True)
    setup_opentelemetry(app)

    @app.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Prometheus metrics endpoint."""
        return Response(
            content=get_prometheus_metrics(),
            media_type="text/plain; charset=utf-8",
        )

    structlog.get_logger().info("Observability setup complete")


def setup_cli_observability() -> None:
    """Set up logging, tracing and error tracking for a one-shot CLI run."""
    configure_structlog()
    setup_sentry()
    setup_tracer_provider()


# Helper functions to record custom metrics
def record_sync_run(status: str, duration: float) -> None:
    """Record a finished sync run."""
    SYNC_RUNS.labels(status=status).inc()
    SYNC_DURATION.observe(duration)


def set_sync_running(running: bool) -> None:
    """Set the sync running state."""
    SYNC_RUNNING.set(1 if running else 0)


def record_link_outcome(outcome: str) -> None:
    """Record how a link was handled."""
    LINKS_PROCESSED.labels(outcome=outcome).inc()


def record_bitly_request(endpoint: str, status_code: int | str, duration: float) -> None:
    """Record a request to the Bitly API."""
    BITLY_REQUESTS.labels(endpoint=endpoint, status_code=str(status_code)).inc()
    BITLY_REQUEST_LATENCY.labels(endpoint=endpoint).observe(duration)
