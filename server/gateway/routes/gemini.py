# ─────────────────────────────────────────────────────────────────────────────
# /api/call-gemini — the gateway endpoint (THIN)
# ─────────────────────────────────────────────────────────────────────────────
# Registered for every method so the pipeline, not the router, answers 405:
# the rate limit must be evaluated before the method check.
# ─────────────────────────────────────────────────────────────────────────────


from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from gateway.dependencies import get_gateway_pipeline
from gateway.services.pipeline import GatewayPipeline

router = APIRouter()

GATEWAY_PATH = "/api/call-gemini"

_ALL_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]

SUCCESS_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "X-Content-Type-Options": "nosniff",
}


@router.api_route(GATEWAY_PATH, methods=_ALL_METHODS)
async def call_gemini(
    request: Request,
    pipeline: GatewayPipeline = Depends(get_gateway_pipeline),
) -> JSONResponse:
    """Relay a generateContent document to Gemini.

    Errors are exceptions rendered by the registered handlers.
    This endpoint is just wiring.
    """
    document = await pipeline.handle(request.method, request.headers, await request.body())
    return JSONResponse(content=document, headers=SUCCESS_HEADERS)
