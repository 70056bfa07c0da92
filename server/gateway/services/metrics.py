# ─────────────────────────────────────────────────────────────────────────────
# Gateway Metrics — thread-safe outcome and latency tracking
# ─────────────────────────────────────────────────────────────────────────────
# Counts every pipeline outcome and keeps recent upstream latencies.
# Exposed via GET /metrics and GET /metrics/prometheus.
#
# Bounded: latency history uses deque(maxlen=1000), auto-evicts oldest.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import threading
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Any

from gateway.schemas import Outcome


@dataclass
class GatewayMetrics:
    """Thread-safe gateway outcome metrics."""

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    requests_total: int = 0
    _outcomes: Counter[Outcome] = field(default_factory=Counter, repr=False)

    # Bounded -- only keeps last 1000 upstream latencies, oldest auto-evicted
    _upstream_latency_history: deque[float] = field(
        default_factory=lambda: deque(maxlen=1000),
        repr=False,
    )

    _start_time: float = field(default_factory=time.time, repr=False)

    def record_outcome(self, outcome: Outcome) -> None:
        """Record the terminal outcome of one gateway request."""
        with self._lock:
            self.requests_total += 1
            self._outcomes[outcome] += 1

    def record_upstream_latency(self, latency_ms: float) -> None:
        with self._lock:
            self._upstream_latency_history.append(latency_ms)

    def outcome_count(self, outcome: Outcome) -> int:
        with self._lock:
            return self._outcomes[outcome]

    def to_dict(self) -> dict[str, Any]:
        """Serialize metrics for the /metrics endpoint."""
        with self._lock:
            latencies = sorted(self._upstream_latency_history)
            n = len(latencies)
            upstream_calls = (
                self._outcomes[Outcome.upstream_success]
                + self._outcomes[Outcome.upstream_rate_limited]
                + self._outcomes[Outcome.upstream_error]
            )
            return {
                "requests_total": self.requests_total,
                "outcomes": {outcome.value: self._outcomes[outcome] for outcome in Outcome},
                "upstream_calls": upstream_calls,
                "upstream_success_rate": round(
                    self._outcomes[Outcome.upstream_success] / max(upstream_calls, 1), 3
                ),
                "upstream_latency_p50_ms": round(latencies[n // 2], 1) if n else 0,
                "upstream_latency_p95_ms": round(latencies[int(n * 0.95)], 1) if n else 0,
                "upstream_latency_mean_ms": round(sum(latencies) / n, 1) if n else 0,
                "uptime_seconds": int(time.time() - self._start_time),
            }
