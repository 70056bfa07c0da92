# ─────────────────────────────────────────────────────────────────────────────
# Gateway Exceptions + FastAPI Exception Handlers
# ─────────────────────────────────────────────────────────────────────────────
# Every terminal condition of the gateway pipeline is one exception carrying
# its Outcome, status code and extra headers. The handlers below turn them
# into {"error": <localized message>} JSON responses.
# ─────────────────────────────────────────────────────────────────────────────

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gateway.messages import DEFAULT_LOCALE, get_message
from gateway.schemas import Outcome

logger = structlog.get_logger(__name__)


# ── Exception hierarchy ──────────────────────────────────────────────────────


class GatewayError(Exception):
    """Base exception for all gateway pipeline outcomes except success.

    `detail` is for server-side logs only and is never sent to the client.
    """

    outcome: Outcome = Outcome.unexpected_failure
    status_code: int = 500

    def __init__(self, detail: str = "", headers: dict[str, str] | None = None):
        self.detail = detail or self.outcome.value
        self.headers = headers or {}
        super().__init__(self.detail)


class RateLimitedError(GatewayError):
    """Raised when a client identity exceeds its sliding-window quota."""

    outcome = Outcome.rate_limited
    status_code = 429

    def __init__(self, identity: str, retry_after_seconds: int):
        self.identity = identity
        self.retry_after_seconds = retry_after_seconds
        super().__init__(
            f"Rate limit exceeded for '{identity}'",
            headers={"Retry-After": str(retry_after_seconds)},
        )


class MethodNotAllowedError(GatewayError):
    outcome = Outcome.method_not_allowed
    status_code = 405

    def __init__(self, method: str, allowed: str = "POST"):
        super().__init__(f"Method '{method}' not allowed", headers={"Allow": allowed})


class InvalidRequestError(GatewayError):
    """Raised for unparsable JSON and for shape or size violations alike."""

    outcome = Outcome.invalid_request
    status_code = 400


class ServerMisconfiguredError(GatewayError):
    outcome = Outcome.misconfigured_server
    status_code = 500


class UpstreamRateLimitedError(GatewayError):
    """Raised when the Gemini API answers 429."""

    outcome = Outcome.upstream_rate_limited
    status_code = 429

    def __init__(self, upstream_status: int, error_body: Any):
        self.upstream_status = upstream_status
        self.error_body = error_body
        super().__init__(f"Upstream rate limited (HTTP {upstream_status})")


class UpstreamCallFailedError(GatewayError):
    """Raised when the Gemini API answers with any other non-success status."""

    outcome = Outcome.upstream_error
    status_code = 500

    def __init__(self, upstream_status: int, error_body: Any):
        self.upstream_status = upstream_status
        self.error_body = error_body
        super().__init__(f"Upstream call failed (HTTP {upstream_status})")


class UnexpectedFailureError(GatewayError):
    """Raised when the upstream call cannot be completed (network, timeout, bad body)."""

    outcome = Outcome.unexpected_failure
    status_code = 500


# ── Rendering ────────────────────────────────────────────────────────────────


def _locale(request: Request) -> str:
    settings = getattr(request.app.state, "settings", None)
    return settings.message_locale if settings is not None else DEFAULT_LOCALE


def error_response(
    outcome: Outcome,
    status_code: int,
    locale: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Shape an error outcome into the client-facing JSON response."""
    return JSONResponse(
        status_code=status_code,
        content={"error": get_message(outcome, locale)},
        headers=headers,
    )


# ── Handler registration ────────────────────────────────────────────────────


def register_exception_handlers(app: FastAPI) -> None:
    """Register all gateway exception handlers on the FastAPI app.

    The pipeline raises GatewayError subclasses; these handlers catch them
    and return structured JSON -- no inline try/except in endpoints.
    """

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "gateway_error",
            outcome=exc.outcome.value,
            status=exc.status_code,
            error=exc.detail,
            error_type=type(exc).__name__,
        )
        return error_response(exc.outcome, exc.status_code, _locale(request), exc.headers)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", error=str(exc), exc_info=True)
        return error_response(Outcome.unexpected_failure, 500, _locale(request))
