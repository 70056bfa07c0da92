# ─────────────────────────────────────────────────────────────────────────────
# Prometheus Metrics Endpoint — text exposition format
# ─────────────────────────────────────────────────────────────────────────────
# GET /metrics/prometheus → text/plain Prometheus format
# Bridges GatewayMetrics → prometheus-client gauges at scrape time.
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import CollectorRegistry, Gauge, generate_latest

from gateway.dependencies import get_metrics, get_rate_limiter
from gateway.rate_limit import SlidingWindowRateLimiter
from gateway.schemas import Outcome
from gateway.services.metrics import GatewayMetrics

router = APIRouter()

# ── Prometheus metrics (custom registry to avoid default process metrics) ─────

_registry = CollectorRegistry()

_requests_by_outcome = Gauge(
    "gateway_requests_by_outcome",
    "Gateway requests by terminal outcome since process start",
    ["outcome"],
    registry=_registry,
)

_upstream_latency_p95 = Gauge(
    "gateway_upstream_latency_p95_ms",
    "p95 latency of recent upstream calls in milliseconds",
    registry=_registry,
)

_tracked_identities = Gauge(
    "gateway_rate_limit_tracked_identities",
    "Client identities currently held by the rate limiter",
    registry=_registry,
)


def _sync_metrics(metrics: GatewayMetrics, limiter: SlidingWindowRateLimiter) -> None:
    """Sync GatewayMetrics data into Prometheus gauges."""
    data = metrics.to_dict()

    for outcome in Outcome:
        _requests_by_outcome.labels(outcome=outcome.value).set(data["outcomes"][outcome.value])

    _upstream_latency_p95.set(data["upstream_latency_p95_ms"])
    _tracked_identities.set(limiter.tracked_identities)


@router.get("/metrics/prometheus")
async def prometheus_metrics(
    metrics: GatewayMetrics = Depends(get_metrics),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
) -> Response:
    """Prometheus text exposition format metrics endpoint."""
    _sync_metrics(metrics, limiter)
    return Response(
        content=generate_latest(_registry),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
