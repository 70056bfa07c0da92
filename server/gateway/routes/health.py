# ─────────────────────────────────────────────────────────────────────────────
# Health Check Routes — liveness, readiness, and JSON metrics
# ─────────────────────────────────────────────────────────────────────────────
#   /health        → Liveness check. Returns 200 always.
#   /health/ready  → Reports credential presence and limiter size. A missing
#                    key is answered per request (500), so this stays 200.
#   /metrics       → Outcome counts and upstream latency.
# ─────────────────────────────────────────────────────────────────────────────

from typing import Any

from fastapi import APIRouter, Depends

from gateway.config import Settings
from gateway.dependencies import get_metrics, get_rate_limiter, get_settings_dep
from gateway.rate_limit import SlidingWindowRateLimiter
from gateway.schemas import LivenessResponse, ReadinessResponse
from gateway.services.metrics import GatewayMetrics

router = APIRouter()


@router.get("/health", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness check — is the process alive? No deps, no I/O."""
    return LivenessResponse(status="ok")


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness(
    settings: Settings = Depends(get_settings_dep),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
) -> ReadinessResponse:
    return ReadinessResponse(
        status="ready",
        credential_configured=settings.credential_configured,
        tracked_identities=limiter.tracked_identities,
    )


@router.get("/metrics")
async def metrics_endpoint(
    metrics: GatewayMetrics = Depends(get_metrics),
) -> dict[str, Any]:
    """Gateway metrics — outcome counts, upstream latency."""
    return metrics.to_dict()
