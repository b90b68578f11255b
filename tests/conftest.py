"""Shared test fixtures for pytest.

ENVIRONMENT is pinned to "test" before the app is imported so settings load
from defaults only, without reading a local .env file.
"""

import os
from collections.abc import AsyncGenerator, Callable, Generator

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient


os.environ["ENVIRONMENT"] = "test"
os.environ.pop("OPENROUTER_API_KEY", None)
os.environ.pop("UPSTASH_REDIS_REST_URL", None)
os.environ.pop("UPSTASH_REDIS_REST_TOKEN", None)

from api.v1.generate import get_upstream_transport
from core.config import get_settings
from core.ratelimit import get_ratelimiter
from main import app


get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _fresh_rate_limiter() -> Generator[None, None, None]:
    """Every test starts with an empty in-memory rate limit window."""
    get_ratelimiter.cache_clear()
    yield
    get_ratelimiter.cache_clear()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """
    Create a test client for the FastAPI application.
    """
    with TestClient(app) as client:
        yield client


@pytest.fixture
def upstream() -> Generator[Callable[[httpx.AsyncBaseTransport], None], None, None]:
    """Route the upstream OpenRouter client through a test transport.

    Usage:
        upstream(httpx.MockTransport(handler))
    """

    def _install(transport: httpx.AsyncBaseTransport) -> None:
        app.dependency_overrides[get_upstream_transport] = lambda: transport

    yield _install
    app.dependency_overrides.pop(get_upstream_transport, None)


@pytest_asyncio.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Async client talking to the app in-process."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
