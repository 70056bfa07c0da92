# FastAPI application factory with lifespan management.
# Entrypoint: uvicorn gateway.main:create_app --factory --host 0.0.0.0 --port 8080

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import structlog
from fastapi import FastAPI

from gateway.config import get_settings
from gateway.exceptions import register_exception_handlers
from gateway.logging_config import configure_logging
from gateway.middleware import GatedCORSMiddleware, RequestContextMiddleware
from gateway.rate_limit import SlidingWindowRateLimiter
from gateway.routes import gemini, health
from gateway.routes import prometheus as prometheus_routes
from gateway.services.metrics import GatewayMetrics
from gateway.services.pipeline import GatewayPipeline
from gateway.services.upstream import UpstreamGateway

logger = structlog.get_logger(__name__)


if TYPE_CHECKING:
    from opentelemetry.sdk.trace import TracerProvider


def _configure_otel(exporter_type: str) -> "TracerProvider | None":
    """Configure OpenTelemetry tracing (console or gcp)."""
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    provider = TracerProvider()

    if exporter_type == "console":
        from opentelemetry.sdk.trace.export import ConsoleSpanExporter

        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    elif exporter_type == "gcp":
        try:
            from opentelemetry.exporter.cloud_trace import CloudTraceSpanExporter

            provider.add_span_processor(BatchSpanProcessor(CloudTraceSpanExporter()))  # type: ignore[no-untyped-call]
        except ImportError:
            logger.warning("gcp_trace_exporter_not_available")
            return None
    else:
        logger.warning("unknown_otel_exporter", exporter=exporter_type)
        return None

    from opentelemetry import trace

    trace.set_tracer_provider(provider)
    logger.info("otel_configured", exporter=exporter_type)
    return provider


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Tracing setup on startup; close the upstream HTTP client on shutdown."""
    otel_provider = None
    otel_exporter = os.environ.get("OTEL_EXPORTER", "")
    if otel_exporter:
        otel_provider = _configure_otel(otel_exporter)

    yield

    # Flush OTel spans before shutdown (critical for Cloud Run scale-to-zero)
    if otel_provider is not None:
        otel_provider.shutdown()

    await app.state.upstream.aclose()


def _parse_origins(allowed_origins: str) -> list[str]:
    """Parse comma-separated CORS origins. Empty string → deny all."""
    if not allowed_origins.strip():
        logger.warning(
            "cors_no_origins_configured",
            hint="Set ALLOWED_ORIGINS env var. Cross-origin requests will be rejected.",
        )
        return []
    return [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]


def create_app() -> FastAPI:
    """Application factory. Invoked by: uvicorn gateway.main:create_app --factory"""
    settings = get_settings()
    configure_logging(log_level=settings.log_level, json_output=settings.log_json)

    app = FastAPI(
        title="Gemini Gateway",
        description="Rate-limited, validating proxy in front of the Gemini generateContent API",
        version="0.1.0",
        lifespan=lifespan,
    )

    # The credential is read once here; a missing key is answered per request.
    if not settings.credential_configured:
        logger.warning("gemini_api_key_missing", reason="GEMINI_API_KEY env var not set")

    limiter = SlidingWindowRateLimiter(
        max_requests=settings.rate_limit_max_requests,
        window_ms=settings.rate_limit_window_seconds * 1000,
    )
    upstream = UpstreamGateway(settings)
    metrics = GatewayMetrics()

    app.state.settings = settings
    app.state.rate_limiter = limiter
    app.state.upstream = upstream
    app.state.metrics = metrics
    app.state.gateway_pipeline = GatewayPipeline(settings, limiter, upstream, metrics=metrics)

    # Middleware order (Starlette applies in reverse): CORS → RequestContext
    app.add_middleware(RequestContextMiddleware)

    # The gateway path keeps its own check order; CORS only decorates replies.
    origins = _parse_origins(settings.allowed_origins)
    app.add_middleware(
        GatedCORSMiddleware,
        gated_paths=[gemini.GATEWAY_PATH],
        allow_origins=origins,
        allow_methods=["POST"],
        allow_headers=["Content-Type"],
    )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(gemini.router, tags=["gemini"])
    app.include_router(prometheus_routes.router, tags=["prometheus"])

    return app
