# ─────────────────────────────────────────────────────────────────────────────
# Pydantic v2 Request / Response Schemas
# ─────────────────────────────────────────────────────────────────────────────


from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Outcome(StrEnum):
    """Terminal classification of one gateway request."""

    rate_limited = "rate_limited"
    method_not_allowed = "method_not_allowed"
    invalid_request = "invalid_request"
    misconfigured_server = "misconfigured_server"
    upstream_rate_limited = "upstream_rate_limited"
    upstream_error = "upstream_error"
    upstream_success = "upstream_success"
    unexpected_failure = "unexpected_failure"


class GenerateContentPayload(BaseModel):
    """Shape guard for the inbound generateContent document.

    Only `contents` is checked, and only for array-ness. The model is used for
    validation; the original parsed dict is what gets forwarded.
    """

    model_config = ConfigDict(extra="allow", strict=True)

    contents: list[Any] = Field(..., description="Gemini conversation turns (opaque)")


class LivenessResponse(BaseModel):
    """Liveness check — minimal, near-zero cost."""

    status: str = "ok"


class ReadinessResponse(BaseModel):
    """Readiness check — configuration and limiter state."""

    status: str  # "ready"
    credential_configured: bool
    tracked_identities: int
