"""API tests for the streaming /generate and /rewrite endpoints."""

from __future__ import annotations

import json
from collections.abc import Callable
from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient

from core.config import Settings, get_settings
from core.ratelimit import InMemoryRateLimiter
from main import app
from services.generation.relay import STREAM_INTERRUPTED_MESSAGE
from sse_helpers import DONE_EVENT, delta_event, failing_stream, parse_sse_body


KEY_HEADERS = {"X-OpenRouter-Key": "sk-or-test"}

GENERATE_BODY = {
    "formData": {
        "onderwerp": "De Gouden Eeuw",
        "niveau": "vwo",
        "leerjaar": 3,
        "leerdoelen": "",
        "lengte": "kort",
        "woordenAantal": 0,
        "metAfbeeldingen": False,
        "metBronnen": False,
        "context": "",
        "template": "klassiek",
    },
    "eerdereHoofdstukken": [],
}

InstallUpstream = Callable[[httpx.AsyncBaseTransport], None]


def streaming_upstream(chunks: list[str], captured: list[httpx.Request]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(
            200,
            headers={"content-type": "text/event-stream"},
            content="".join(chunks).encode(),
        )

    return httpx.MockTransport(handler)


class TestGenerate:
    def test_streams_prompt_content_then_done(
        self, client: TestClient, upstream: InstallUpstream
    ) -> None:
        captured: list[httpx.Request] = []
        upstream(
            streaming_upstream(
                [delta_event("# De "), delta_event("<b>Gouden</b> Eeuw"), DONE_EVENT],
                captured,
            )
        )

        response = client.post("/api/v1/generate", json=GENERATE_BODY, headers=KEY_HEADERS)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["x-accel-buffering"] == "no"

        messages = parse_sse_body(response.text)
        assert messages[0]["type"] == "prompt"
        assert "De Gouden Eeuw" in messages[0]["content"]
        assert messages[1:] == [
            {"type": "content", "content": "# De "},
            {"type": "content", "content": "**Gouden** Eeuw"},
            {"type": "done"},
        ]

        sent = json.loads(captured[0].content)
        assert captured[0].headers["Authorization"] == "Bearer sk-or-test"
        assert sent["stream"] is True
        assert 600 <= sent["max_tokens"] <= 4096
        assert sent["messages"][0]["content"] == messages[0]["content"]

    def test_missing_api_key_returns_401(self, client: TestClient) -> None:
        response = client.post("/api/v1/generate", json=GENERATE_BODY)

        assert response.status_code == 401
        data = response.json()
        assert data["success"] is False
        assert data["error"]["type"] == "missing_api_key"
        assert "API key is vereist" in data["message"]

    def test_falls_back_to_configured_key(
        self, client: TestClient, upstream: InstallUpstream
    ) -> None:
        captured: list[httpx.Request] = []
        upstream(streaming_upstream([delta_event("ok"), DONE_EVENT], captured))
        app.dependency_overrides[get_settings] = lambda: Settings(
            OPENROUTER_API_KEY="sk-from-env"
        )
        try:
            response = client.post("/api/v1/generate", json=GENERATE_BODY)
        finally:
            app.dependency_overrides.pop(get_settings, None)

        assert response.status_code == 200
        assert captured[0].headers["Authorization"] == "Bearer sk-from-env"

    def test_upstream_status_is_propagated(
        self, client: TestClient, upstream: InstallUpstream
    ) -> None:
        upstream(
            httpx.MockTransport(
                lambda request: httpx.Response(
                    401, json={"error": {"message": "User not found."}}
                )
            )
        )

        response = client.post("/api/v1/generate", json=GENERATE_BODY, headers=KEY_HEADERS)

        assert response.status_code == 401
        data = response.json()
        assert data["message"] == "User not found."
        assert data["error"]["type"] == "upstream_error"

    def test_connect_timeout_returns_504(
        self, client: TestClient, upstream: InstallUpstream
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        upstream(httpx.MockTransport(handler))

        response = client.post("/api/v1/generate", json=GENERATE_BODY, headers=KEY_HEADERS)

        assert response.status_code == 504
        assert response.json()["message"] == "Generatie duurde te lang. Probeer het opnieuw."

    def test_mid_stream_failure_ends_with_error_and_done(
        self, client: TestClient, upstream: InstallUpstream
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                content=failing_stream(
                    [delta_event("Begin")], httpx.ReadTimeout("read timed out")
                ),
            )

        upstream(httpx.MockTransport(handler))

        response = client.post("/api/v1/generate", json=GENERATE_BODY, headers=KEY_HEADERS)

        messages = parse_sse_body(response.text)
        assert [m["type"] for m in messages] == ["prompt", "content", "error", "done"]
        assert messages[2]["error"] == STREAM_INTERRUPTED_MESSAGE

    def test_invalid_body_returns_422(self, client: TestClient) -> None:
        body = {"formData": {**GENERATE_BODY["formData"], "onderwerp": "   "}}

        response = client.post("/api/v1/generate", json=body, headers=KEY_HEADERS)

        assert response.status_code == 422
        assert response.json()["error"]["type"] == "validation_error"

    def test_rate_limited(self, client: TestClient, upstream: InstallUpstream) -> None:
        upstream(streaming_upstream([DONE_EVENT], []))
        limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60)

        with patch("core.ratelimit.get_ratelimiter", return_value=limiter):
            first = client.post("/api/v1/generate", json=GENERATE_BODY, headers=KEY_HEADERS)
            second = client.post("/api/v1/generate", json=GENERATE_BODY, headers=KEY_HEADERS)

        assert first.status_code == 200
        assert second.status_code == 429
        assert int(second.headers["Retry-After"]) >= 1
        assert second.headers["X-RateLimit-Remaining"] == "0"

    def test_correlation_id_is_echoed(self, client: TestClient) -> None:
        response = client.post(
            "/api/v1/generate",
            json=GENERATE_BODY,
            headers={"X-Correlation-ID": "corr-123"},
        )
        assert response.headers["X-Correlation-ID"] == "corr-123"
        assert response.json()["error"]["correlation_id"] == "corr-123"


class TestRewrite:
    @pytest.mark.asyncio
    async def test_streams_without_prompt_event(
        self, async_client: AsyncClient, upstream: InstallUpstream
    ) -> None:
        captured: list[httpx.Request] = []
        upstream(
            streaming_upstream([delta_event("Korter "), delta_event("gezegd."), DONE_EVENT], captured)
        )

        response = await async_client.post(
            "/api/v1/rewrite",
            json={"sectie": "Een lange tekst.", "instructie": "maak korter"},
            headers=KEY_HEADERS,
        )

        assert response.status_code == 200
        messages = parse_sse_body(response.text)
        assert messages == [
            {"type": "content", "content": "Korter "},
            {"type": "content", "content": "gezegd."},
            {"type": "done"},
        ]
        sent = json.loads(captured[0].content)
        assert sent["max_tokens"] == 4096
        assert "INSTRUCTIE: maak korter" in sent["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_blank_instruction_rejected(self, async_client: AsyncClient) -> None:
        response = await async_client.post(
            "/api/v1/rewrite",
            json={"sectie": "tekst", "instructie": "  "},
            headers=KEY_HEADERS,
        )
        assert response.status_code == 422
