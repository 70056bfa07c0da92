# Gateway pipeline: rate limit → method → parse/validate → credential → upstream.
# Each stage either continues or raises its GatewayError; the first failure
# short-circuits everything after it. The order is part of the contract: a
# rate-limited GET is answered 429, never 405.


import time
from collections.abc import Mapping
from typing import Any

import structlog
from opentelemetry import trace

from gateway.config import Settings
from gateway.exceptions import (
    GatewayError,
    MethodNotAllowedError,
    RateLimitedError,
    ServerMisconfiguredError,
    UnexpectedFailureError,
)
from gateway.rate_limit import SlidingWindowRateLimiter, client_identity
from gateway.schemas import Outcome
from gateway.services.metrics import GatewayMetrics
from gateway.services.upstream import UpstreamGateway
from gateway.validation import parse_payload

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

ALLOWED_METHOD = "POST"


class GatewayPipeline:
    """Admission control in front of the Gemini API."""

    def __init__(
        self,
        settings: Settings,
        limiter: SlidingWindowRateLimiter,
        upstream: UpstreamGateway,
        metrics: GatewayMetrics | None = None,
    ) -> None:
        self._settings = settings
        self._limiter = limiter
        self._upstream = upstream
        self._metrics = metrics

    async def handle(self, method: str, headers: Mapping[str, str], body: bytes | str) -> Any:
        """Run one request through every stage and return the upstream document."""
        with tracer.start_as_current_span("gateway_request") as span:
            span.set_attribute("http.method", method)
            try:
                document = await self._run_stages(method, headers, body)
            except GatewayError as exc:
                span.set_attribute("outcome", exc.outcome.value)
                self._record(exc.outcome)
                raise
            except Exception:
                # Rendered as the generic 500 by the catch-all handler.
                span.set_attribute("outcome", Outcome.unexpected_failure.value)
                self._record(Outcome.unexpected_failure)
                raise
            span.set_attribute("outcome", Outcome.upstream_success.value)
            self._record(Outcome.upstream_success)
            return document

    async def _run_stages(self, method: str, headers: Mapping[str, str], body: bytes | str) -> Any:
        identity = client_identity(headers, self._settings.client_ip_headers)
        if not self._limiter.check(identity):
            raise RateLimitedError(identity, self._limiter.retry_after_seconds)

        if method.upper() != ALLOWED_METHOD:
            raise MethodNotAllowedError(method, allowed=ALLOWED_METHOD)

        payload = parse_payload(body, self._settings.max_payload_size)

        credential = self._settings.gemini_api_key.get_secret_value()
        if not credential:
            logger.error(
                "gemini_api_key_missing",
                hint="Set the GEMINI_API_KEY env var; no upstream call was made.",
            )
            raise ServerMisconfiguredError("GEMINI_API_KEY is not configured")

        return await self._call_upstream(payload, credential)

    async def _call_upstream(self, payload: dict[str, Any], credential: str) -> Any:
        start = time.perf_counter()
        try:
            return await self._upstream.forward(payload, credential)
        except GatewayError:
            raise
        except Exception as exc:
            error_type = type(exc).__name__
            logger.exception("upstream_unexpected_error", error_type=error_type)
            raise UnexpectedFailureError(f"Unexpected upstream failure: {error_type}") from exc
        finally:
            if self._metrics:
                self._metrics.record_upstream_latency((time.perf_counter() - start) * 1000)

    def _record(self, outcome: Outcome) -> None:
        if self._metrics:
            self._metrics.record_outcome(outcome)
