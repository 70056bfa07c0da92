# ─────────────────────────────────────────────────────────────────────────────
# Request Middleware — request ID, timing, gateway-safe CORS
# ─────────────────────────────────────────────────────────────────────────────


import time
import uuid
from collections.abc import Iterable
from typing import Any

import structlog
from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp, Receive, Scope, Send

logger = structlog.get_logger()

# Liveness/readiness polls and metric scrapes; they never touch the gateway.
_UNLOGGED_PREFIXES = ("/health", "/metrics")


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags every gateway call with a short request id and logs its status.

    The id is bound into structlog's contextvars, so the pipeline's
    `gateway_error` and upstream log lines for one call share it. Only the
    path is logged: the query string is where a client could put a key.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:  # noqa: ANN001
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        structlog.contextvars.bind_contextvars(request_id=request_id)
        start = time.perf_counter()

        try:
            response: Response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        duration_ms = (time.perf_counter() - start) * 1000

        if not request.url.path.startswith(_UNLOGGED_PREFIXES):
            logger.info(
                "request_completed",
                request_id=request_id,
                method=request.method,
                path=str(request.url.path),
                status=response.status_code,
                duration_ms=round(duration_ms, 1),
            )

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-Ms"] = str(round(duration_ms, 1))
        return response


class GatedCORSMiddleware(CORSMiddleware):
    """CORS that never short-circuits a request to a gated path.

    Starlette's CORSMiddleware answers preflights itself. On a gated path that
    would skip the rate limit and the 405, so there every request, OPTIONS
    included, goes to the app and CORS headers are only added to its response.
    """

    def __init__(self, app: ASGIApp, gated_paths: Iterable[str] = (), **kwargs: Any) -> None:
        super().__init__(app, **kwargs)
        self.gated_paths = frozenset(gated_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope["path"] not in self.gated_paths:
            await super().__call__(scope, receive, send)
            return

        headers = Headers(scope=scope)
        if "origin" in headers:
            await self.simple_response(scope, receive, send, request_headers=headers)
        else:
            await self.app(scope, receive, send)
