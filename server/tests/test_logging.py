# ─────────────────────────────────────────────────────────────────────────────
# Tests — logging configuration + request_completed events
# ─────────────────────────────────────────────────────────────────────────────

import logging

from structlog.testing import capture_logs

from conftest import GATEWAY_PATH
from gateway.logging_config import configure_logging


def test_http_client_loggers_capped_at_warning():
    configure_logging(log_level="DEBUG", json_output=False)

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING


def test_gateway_call_logged_with_its_request_id(client):
    with capture_logs() as logs:
        response = client.get(
            f"{GATEWAY_PATH}?key=client-supplied", headers={"X-Forwarded-For": "192.0.2.70"}
        )

    completed = [e for e in logs if e["event"] == "request_completed"]
    assert completed == [
        {
            "event": "request_completed",
            "log_level": "info",
            "request_id": response.headers["x-request-id"],
            "method": "GET",
            "path": GATEWAY_PATH,
            "status": 405,
            "duration_ms": completed[0]["duration_ms"],
        }
    ]
    assert "client-supplied" not in str(logs)


def test_health_and_metrics_not_logged(client):
    with capture_logs() as logs:
        client.get("/health")
        client.get("/health/ready")
        client.get("/metrics")
        client.get("/metrics/prometheus")

    assert [e for e in logs if e["event"] == "request_completed"] == []
