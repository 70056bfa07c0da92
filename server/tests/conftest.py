# ─────────────────────────────────────────────────────────────────────────────
# Test Fixtures — shared across all tests
# ─────────────────────────────────────────────────────────────────────────────

import os
from collections.abc import Callable, Iterator

import pytest
import respx
from fastapi.testclient import TestClient

from gateway.config import Settings

TEST_API_KEY = "test-gemini-key-2026"
UPSTREAM_BASE_URL = "https://gemini.test/v1beta"
UPSTREAM_MODEL = "gemini-test"
UPSTREAM_URL = f"{UPSTREAM_BASE_URL}/models/{UPSTREAM_MODEL}:generateContent"
GATEWAY_PATH = "/api/call-gemini"


@pytest.fixture
def test_settings() -> Settings:
    """Settings pointed at a fake upstream, with a key configured."""
    return Settings(
        gemini_api_key=TEST_API_KEY,
        upstream_base_url=UPSTREAM_BASE_URL,
        upstream_model=UPSTREAM_MODEL,
        log_json=False,
        log_level="DEBUG",
    )


@pytest.fixture
def make_client() -> Iterator[Callable[..., TestClient]]:
    """Build TestClients from env overrides.

    We clear the settings cache and set env vars so create_app() picks up
    test-safe values; every client is entered so the lifespan runs and the
    upstream httpx client is closed afterwards.
    """
    from gateway.config import get_settings
    from gateway.main import create_app

    clients: list[TestClient] = []

    def _make(api_key: str = TEST_API_KEY, **overrides: str) -> TestClient:
        get_settings.cache_clear()
        env_overrides = {
            "UPSTREAM_BASE_URL": UPSTREAM_BASE_URL,
            "UPSTREAM_MODEL": UPSTREAM_MODEL,
            "LOG_JSON": "false",
            "LOG_LEVEL": "DEBUG",
            **{k.upper(): v for k, v in overrides.items()},
        }
        if api_key:
            env_overrides["GEMINI_API_KEY"] = api_key

        saved_key = os.environ.pop("GEMINI_API_KEY", None)
        for k, v in env_overrides.items():
            os.environ[k] = v
        try:
            client = TestClient(create_app(), raise_server_exceptions=False)
            client.__enter__()
            clients.append(client)
            return client
        finally:
            for k in env_overrides:
                os.environ.pop(k, None)
            if saved_key is not None:
                os.environ["GEMINI_API_KEY"] = saved_key
            get_settings.cache_clear()

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client: Callable[..., TestClient]) -> TestClient:
    """TestClient for an app with the key configured and default limits."""
    return make_client()


@pytest.fixture
def gemini_mock() -> Iterator[respx.MockRouter]:
    """respx router intercepting the outbound Gemini call.

    Unmocked outbound requests fail inside the app, so every test that
    expects an upstream call registers a route on this router.
    """
    with respx.mock(assert_all_called=False) as router:
        yield router
