"""Focused unit tests for global exception handling behaviors.

These tests exercise the public contract via a FastAPI test app using the
installed exception handler and ExceptionNormalizationMiddleware.
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from fastapi import FastAPI, HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field

from core.error_handler import (
    ExceptionNormalizationMiddleware,
    global_exception_handler,
)
from core.exceptions import (
    GenerationError,
    MissingApiKeyError,
    UpstreamHTTPError,
    UpstreamTimeoutError,
)
from core.middleware import CorrelationIdMiddleware


class Chapter(BaseModel):
    onderwerp: str = Field(min_length=3)
    leerjaar: int = Field(ge=1)


def _make_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(ExceptionNormalizationMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_exception_handler(Exception, global_exception_handler)
    app.add_exception_handler(HTTPException, global_exception_handler)
    app.add_exception_handler(RequestValidationError, global_exception_handler)
    app.add_exception_handler(GenerationError, global_exception_handler)

    @app.post("/chapters")
    async def create_chapter(chapter: Chapter):  # pragma: no cover - executed via client
        return {"ok": True}

    @app.get("/missing-key")
    async def missing_key():
        raise MissingApiKeyError()

    @app.get("/upstream-timeout")
    async def upstream_timeout():
        raise UpstreamTimeoutError()

    @app.get("/upstream-429")
    async def upstream_rate_limited():
        raise UpstreamHTTPError("Rate limit exceeded", status_code=429)

    @app.get("/boom")
    async def boom():
        raise RuntimeError("Exploded with api_key=should_not_leak")

    @app.get("/too-many")
    async def too_many():
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Te veel verzoeken",
            headers={"Retry-After": "30"},
        )

    return app


@pytest.fixture
def build_test_app(monkeypatch: pytest.MonkeyPatch):
    """Return a factory producing a client for the given ENVIRONMENT."""

    def _build(env: str) -> TestClient:
        monkeypatch.setattr(
            "core.error_handler.get_settings", lambda: SimpleNamespace(ENVIRONMENT=env)
        )
        return TestClient(_make_app())

    return _build


def test_validation_error_production(build_test_app):
    client = build_test_app("production")
    resp = client.post("/chapters", json={"onderwerp": "ab", "leerjaar": 0})
    assert resp.status_code == 422
    data = resp.json()
    assert data["error"]["type"] == "validation_error"
    assert "validation_errors" not in data["error"]


def test_validation_error_development(build_test_app):
    client = build_test_app("development")
    resp = client.post("/chapters", json={"onderwerp": "ab", "leerjaar": 0})
    assert resp.status_code == 422
    assert "validation_errors" in resp.json()["error"]


def test_missing_api_key_maps_to_401(build_test_app):
    client = build_test_app("production")
    resp = client.get("/missing-key")
    assert resp.status_code == 401
    body = resp.json()
    assert body["success"] is False
    assert body["error"]["type"] == "missing_api_key"
    assert body["message"].startswith("API key is vereist")


def test_upstream_timeout_maps_to_504(build_test_app):
    client = build_test_app("development")
    resp = client.get("/upstream-timeout")
    assert resp.status_code == 504
    assert resp.json()["error"]["type"] == "upstream_timeout"


def test_upstream_status_is_kept(build_test_app):
    client = build_test_app("production")
    resp = client.get("/upstream-429")
    assert resp.status_code == 429
    body = resp.json()
    assert body["message"] == "Rate limit exceeded"
    assert body["error"]["type"] == "upstream_error"


def test_generic_exception_production(build_test_app):
    client = build_test_app("production")
    resp = client.get("/boom")
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"]["type"] == "internal_server_error"
    assert body["message"] == "Er ging iets mis bij het genereren"
    assert "traceback" not in body["error"]
    assert "should_not_leak" not in str(body)


def test_generic_exception_development(build_test_app):
    client = build_test_app("development")
    resp = client.get("/boom")
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"]["type"] == "internal_server_error"
    assert "traceback" in body["error"]


def test_http_exception_keeps_status_and_headers(build_test_app):
    client = build_test_app("production")
    resp = client.get("/too-many")
    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "30"
    body = resp.json()
    assert body["error"]["type"] == "http_error"
    assert body["message"] == "Te veel verzoeken"
    assert "details" not in body["error"]


def test_correlation_id_in_error_body(build_test_app):
    client = build_test_app("production")
    resp = client.get("/missing-key", headers={"X-Correlation-ID": "abc-123"})
    assert resp.headers["X-Correlation-ID"] == "abc-123"
    assert resp.json()["error"]["correlation_id"] == "abc-123"
