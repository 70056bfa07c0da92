# ─────────────────────────────────────────────────────────────────────────────
# Dependency Injection — FastAPI Depends() providers
# ─────────────────────────────────────────────────────────────────────────────
# State flows: create_app builds → app.state stores → Depends() injects.
# ─────────────────────────────────────────────────────────────────────────────


from fastapi import Request

from gateway.config import Settings
from gateway.rate_limit import SlidingWindowRateLimiter
from gateway.services.metrics import GatewayMetrics
from gateway.services.pipeline import GatewayPipeline


def get_settings_dep(request: Request) -> Settings:
    """Inject Settings into endpoints via Depends()."""
    return request.app.state.settings  # type: ignore[no-any-return]


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    """Inject the process-wide SlidingWindowRateLimiter via Depends()."""
    return request.app.state.rate_limiter  # type: ignore[no-any-return]


def get_metrics(request: Request) -> GatewayMetrics:
    """Inject GatewayMetrics into endpoints via Depends()."""
    return request.app.state.metrics  # type: ignore[no-any-return]


def get_gateway_pipeline(request: Request) -> GatewayPipeline:
    """Inject GatewayPipeline into endpoints via Depends()."""
    return request.app.state.gateway_pipeline  # type: ignore[no-any-return]
