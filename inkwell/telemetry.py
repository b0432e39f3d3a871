"""
Observability setup:
  - OpenTelemetry distributed tracing → Jaeger (via OTLP gRPC)
  - Prometheus metrics: posts, claps, uploads, auth attempts

Tracing is opt-in (INKWELL_TRACING_ENABLED); metrics are always collected
and exposed at /metrics.
"""
import logging
from typing import Optional

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from prometheus_client import Counter

from inkwell.config import Settings

logger = logging.getLogger(__name__)

# ─────────────────────────── Prometheus Metrics ───────────────────────────
POSTS_CREATED_TOTAL = Counter(
    "inkwell_posts_created_total",
    "Total number of posts created",
)

CLAPS_TOTAL = Counter(
    "inkwell_claps_total",
    "Total claps recorded (sum of clap counts)",
)

UPLOADS_TOTAL = Counter(
    "inkwell_uploads_total",
    "Image uploads by result",
    ["result"],  # 'stored' or 'rejected'
)

AUTH_ATTEMPTS_TOTAL = Counter(
    "inkwell_auth_attempts_total",
    "Registration and login attempts by outcome",
    ["action", "outcome"],
)


# ─────────────────────────── OpenTelemetry Setup ──────────────────────────
_tracing_configured = False


def _span_exporter(settings: Settings) -> Optional[OTLPSpanExporter]:
    try:
        return OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint, insecure=True)
    except Exception as exc:
        logger.warning("OTLP exporter unavailable (%s); spans will not be exported", exc)
        return None


def setup_tracing(settings: Settings) -> None:
    """Install the global TracerProvider and instrument the data-layer clients (once per process)."""
    global _tracing_configured
    if _tracing_configured:
        return

    provider = TracerProvider(
        resource=Resource.create(
            {
                "service.name": settings.service_name,
                "deployment.environment": settings.environment,
            }
        )
    )
    exporter = _span_exporter(settings)
    if exporter is not None:
        provider.add_span_processor(BatchSpanProcessor(exporter))
        logger.info("Exporting spans to %s", settings.otel_exporter_otlp_endpoint)
    trace.set_tracer_provider(provider)

    SQLAlchemyInstrumentor().instrument()
    if settings.session_backend == "redis":
        RedisInstrumentor().instrument()
    _tracing_configured = True


def instrument_app(app: FastAPI) -> None:
    """Add a server span around every request handled by app."""
    FastAPIInstrumentor.instrument_app(app)
