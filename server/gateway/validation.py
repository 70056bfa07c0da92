# Inbound payload parsing + shape/size validation.
# Every failure is an InvalidRequestError; the reason is kept for logs only.

import json
import math
from typing import Any, NoReturn

from pydantic import ValidationError

from gateway.exceptions import InvalidRequestError
from gateway.schemas import GenerateContentPayload


def _reject_constant(name: str) -> NoReturn:
    # json.loads accepts NaN/Infinity by default; they are not JSON.
    raise ValueError(f"Non-standard JSON constant: {name}")


def _finite_float(text: str) -> float:
    # Out-of-range literals such as 1e400 parse to inf, which cannot be re-encoded.
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"Number out of range: {text}")
    return value


def loads_strict(raw: bytes | str) -> Any:
    """json.loads that rejects NaN, Infinity and numbers that overflow to inf."""
    return json.loads(raw, parse_constant=_reject_constant, parse_float=_finite_float)


def serialized_size(payload: Any) -> int:
    """Character length of the compact JSON re-serialization."""
    return len(json.dumps(payload, separators=(",", ":"), ensure_ascii=False))


def validate_payload(payload: Any, max_size: int) -> None:
    """Raise InvalidRequestError unless `payload` is an object with a `contents` array within size."""
    if not isinstance(payload, dict):
        raise InvalidRequestError(
            f"Request body must be a JSON object, got {type(payload).__name__}"
        )

    try:
        GenerateContentPayload.model_validate(payload)
    except ValidationError as exc:
        raise InvalidRequestError(f"Invalid contents format: {exc.error_count()} error(s)") from exc

    size = serialized_size(payload)
    if size > max_size:
        raise InvalidRequestError(f"Request payload too large ({size} > {max_size})")


def parse_payload(raw: bytes | str, max_size: int) -> dict[str, Any]:
    """Parse the raw body as JSON and validate it. Parse errors are InvalidRequestError too."""
    try:
        payload = loads_strict(raw)
    except (ValueError, RecursionError) as exc:
        # JSONDecodeError and UnicodeDecodeError are both ValueError
        raise InvalidRequestError(f"Body is not valid JSON: {type(exc).__name__}") from exc

    validate_payload(payload, max_size)
    return payload
