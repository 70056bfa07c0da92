# Outbound call to the Gemini generateContent API. One POST per inbound
# request; no retries, no fallback upstream. The key is only ever placed in
# the query string of this call.

import time
from typing import Any

import httpx
import structlog
from opentelemetry import trace

from gateway.config import Settings
from gateway.exceptions import (
    UnexpectedFailureError,
    UpstreamCallFailedError,
    UpstreamRateLimitedError,
)
from gateway.validation import loads_strict

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)


class UpstreamGateway:
    """Forwards validated payloads to Gemini and classifies the response."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._url = settings.upstream_url
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.upstream_timeout_seconds)
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def forward(self, payload: dict[str, Any], credential: str) -> Any:
        """POST `payload` upstream and return the parsed success document verbatim.

        Raises UpstreamRateLimitedError on 429, UpstreamCallFailedError on any
        other non-success status, and UnexpectedFailureError when the call
        cannot be completed or the success body is not JSON.
        """
        with tracer.start_as_current_span("upstream_call") as span:
            start = time.perf_counter()
            try:
                response = await self._client.post(
                    self._url,
                    params={"key": credential},
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
            except httpx.HTTPError as exc:
                # str(exc) can embed the request URL, which carries the key
                error_type = type(exc).__name__
                logger.error("upstream_call_failed", error_type=error_type)
                raise UnexpectedFailureError(f"Upstream unreachable: {error_type}") from None

            latency_ms = round((time.perf_counter() - start) * 1000, 1)

            span.set_attribute("http.status_code", response.status_code)
            span.set_attribute("latency_ms", latency_ms)

            if not response.is_success:
                error_body = _best_effort_json(response)
                logger.warning(
                    "upstream_error_response",
                    status=response.status_code,
                    error_body=error_body,
                    latency_ms=latency_ms,
                )
                if response.status_code == 429:
                    raise UpstreamRateLimitedError(response.status_code, error_body)
                raise UpstreamCallFailedError(response.status_code, error_body)

            try:
                # NaN or inf here would pass through and break rendering later.
                document = loads_strict(response.content)
            except (ValueError, RecursionError):
                raise UnexpectedFailureError("Upstream success body is not strict JSON") from None

            logger.info(
                "upstream_call_succeeded",
                status=response.status_code,
                latency_ms=latency_ms,
            )
            return document


def _best_effort_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {}
