# ─────────────────────────────────────────────────────────────────────────────
# Integration tests — full request flow through the ASGI app
# ─────────────────────────────────────────────────────────────────────────────
# httpx.AsyncClient(ASGITransport) drives the app in-process; respx mocks
# only the outbound Gemini call (ASGITransport is not intercepted).
# Manually wires app.state (ASGITransport doesn't run lifespan).
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import httpx
import pytest
import respx
from httpx import ASGITransport, AsyncClient

from conftest import GATEWAY_PATH, UPSTREAM_URL
from gateway.config import Settings


@pytest.fixture
async def app(test_settings: Settings):
    """App whose state uses the test settings and a controllable limiter clock."""
    from gateway.main import create_app
    from gateway.rate_limit import SlidingWindowRateLimiter
    from gateway.services.metrics import GatewayMetrics
    from gateway.services.pipeline import GatewayPipeline
    from gateway.services.upstream import UpstreamGateway

    app = create_app()
    await app.state.upstream.aclose()

    # Replace app.state with test wiring: a clock we control + test settings
    clock = {"now": 0.0}
    limiter = SlidingWindowRateLimiter(
        max_requests=3, window_ms=60_000, clock=lambda: clock["now"]
    )
    upstream = UpstreamGateway(test_settings)
    metrics = GatewayMetrics()

    app.state.settings = test_settings
    app.state.rate_limiter = limiter
    app.state.upstream = upstream
    app.state.metrics = metrics
    app.state.gateway_pipeline = GatewayPipeline(
        test_settings, limiter, upstream, metrics=metrics
    )
    app.state.clock = clock

    yield app

    await upstream.aclose()


@pytest.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


def _headers(ip: str = "198.51.100.20") -> dict[str, str]:
    return {"X-Forwarded-For": ip}


class TestSlidingWindowOverHttp:
    @respx.mock
    async def test_window_slides_with_the_clock(self, app, client: AsyncClient) -> None:
        respx.post(url__startswith=UPSTREAM_URL).mock(
            return_value=httpx.Response(200, json={"candidates": []})
        )
        clock = app.state.clock

        for t in (0, 1_000, 2_000):
            clock["now"] = t
            r = await client.post(GATEWAY_PATH, json={"contents": []}, headers=_headers())
            assert r.status_code == 200

        clock["now"] = 30_000
        r = await client.post(GATEWAY_PATH, json={"contents": []}, headers=_headers())
        assert r.status_code == 429

        # t=0 has left the window at t=60s; one slot frees up
        clock["now"] = 60_000
        r = await client.post(GATEWAY_PATH, json={"contents": []}, headers=_headers())
        assert r.status_code == 200

        r = await client.post(GATEWAY_PATH, json={"contents": []}, headers=_headers())
        assert r.status_code == 429


class TestStageOrdering:
    @respx.mock
    async def test_each_stage_short_circuits_the_next(self, client: AsyncClient) -> None:
        route = respx.post(url__startswith=UPSTREAM_URL).mock(
            return_value=httpx.Response(200, json={"foo": "bar"})
        )
        headers = _headers("198.51.100.30")

        # method → 405 (quota consumed, no upstream call)
        r = await client.put(GATEWAY_PATH, json={"contents": []}, headers=headers)
        assert r.status_code == 405

        # invalid body → 400 (quota consumed, no upstream call)
        r = await client.post(GATEWAY_PATH, content=b'{"contents": 1}', headers=headers)
        assert r.status_code == 400
        assert not route.called

        # valid → 200 with the upstream document
        r = await client.post(GATEWAY_PATH, json={"contents": []}, headers=headers)
        assert r.status_code == 200
        assert r.text == '{"foo":"bar"}'

        # quota exhausted → 429 even for an invalid body and wrong method
        r = await client.delete(GATEWAY_PATH, headers=headers)
        assert r.status_code == 429
        assert route.call_count == 1

    @respx.mock
    async def test_unexpected_exception_becomes_generic_500(
        self, app, client: AsyncClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def _boom(payload, credential):
            raise RuntimeError("kaboom")

        monkeypatch.setattr(app.state.upstream, "forward", _boom)

        headers = _headers("198.51.100.40")
        r = await client.post(GATEWAY_PATH, json={"contents": []}, headers=headers)

        assert r.status_code == 500
        assert r.json() == {"error": "サーバーエラーが発生しました。"}
        assert "kaboom" not in r.text
        assert app.state.metrics.to_dict()["outcomes"]["unexpected_failure"] == 1
