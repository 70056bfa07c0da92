# ─────────────────────────────────────────────────────────────────────────────
# Rate Limiter — per-identity sliding window
# ─────────────────────────────────────────────────────────────────────────────
# identity → admitted timestamps (ms). Each check prunes the identity's list
# to the trailing window, so stale entries are collected on the next visit.
# Only admitted requests are recorded; rejections leave the list untouched.
#
# Process-local: with N instances the effective global limit is
# max_requests × N. Identities come from a client-controlled header and are
# not authenticated.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable, Mapping

UNKNOWN_IDENTITY = "unknown"


def _wall_clock_ms() -> float:
    return time.time() * 1000


def client_identity(headers: Mapping[str, str], header_names: Iterable[str]) -> str:
    """First non-empty header value among `header_names`, else "unknown".

    Starlette's Headers mapping is case-insensitive, so names may be given in
    any case when reading from a request.
    """
    for name in header_names:
        value = headers.get(name)
        if value and value.strip():
            return value.strip()
    return UNKNOWN_IDENTITY


class SlidingWindowRateLimiter:
    """Exact per-identity admission counter over a trailing window."""

    def __init__(
        self,
        max_requests: int = 30,
        window_ms: float = 60_000,
        clock: Callable[[], float] = _wall_clock_ms,
    ) -> None:
        self.max_requests = max_requests
        self.window_ms = window_ms
        self._clock = clock
        self._log: dict[str, list[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep: float | None = None

    @property
    def retry_after_seconds(self) -> int:
        return max(1, int(self.window_ms // 1000))

    @property
    def tracked_identities(self) -> int:
        with self._lock:
            return len(self._log)

    def _recent(self, identity: str, now: float) -> list[float]:
        return [ts for ts in self._log.get(identity, ()) if now - ts < self.window_ms]

    def check(self, identity: str, now: float | None = None) -> bool:
        """Admit and record a request for `identity` at `now` (ms), or reject it.

        Returns False when `max_requests` admissions already fall inside the
        window ending at `now`; the stored list is not modified in that case.
        """
        if now is None:
            now = self._clock()

        with self._lock:
            self._maybe_sweep(now)

            recent = self._recent(identity, now)
            if len(recent) >= self.max_requests:
                return False

            recent.append(now)
            self._log[identity] = recent
            return True

    def sweep(self, now: float | None = None) -> int:
        """Drop identities with no admissions inside the window. Returns the count dropped."""
        if now is None:
            now = self._clock()
        with self._lock:
            return self._sweep(now)

    def _maybe_sweep(self, now: float) -> None:
        if self._last_sweep is None:
            self._last_sweep = now
        elif now - self._last_sweep >= self.window_ms:
            self._sweep(now)

    def _sweep(self, now: float) -> int:
        idle = [identity for identity in self._log if not self._recent(identity, now)]
        for identity in idle:
            del self._log[identity]
        self._last_sweep = now
        return len(idle)
