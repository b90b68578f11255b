"""Streaming client for the OpenRouter chat-completions endpoint."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from core.config import Settings
from core.exceptions import (
    UpstreamConnectionError,
    UpstreamHTTPError,
    UpstreamTimeoutError,
)
from services.generation.sse import extract_error_message


logger = logging.getLogger(__name__)


class OpenRouterClient:
    """Opens streamed completions; the caller owns the returned response.

    One instance per request. Use it as an async context manager, or call
    `aclose()` once the stream has been relayed.
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self._client = httpx.AsyncClient(transport=transport)

    async def __aenter__(self) -> OpenRouterClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.settings.OPENROUTER_REFERER,
            "X-Title": self.settings.OPENROUTER_TITLE,
        }

    def build_payload(self, prompt: str, max_tokens: int) -> dict[str, Any]:
        return {
            "model": self.settings.OPENROUTER_MODEL,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
            "stream": True,
        }

    async def open_stream(
        self, api_key: str, prompt: str, max_tokens: int, timeout: float
    ) -> httpx.Response:
        """POST a streamed completion and return the open response.

        Raises:
            UpstreamTimeoutError: connecting or waiting for headers timed out.
            UpstreamConnectionError: any other transport failure.
            UpstreamHTTPError: the upstream answered with a non-2xx status.
        """
        request = self._client.build_request(
            "POST",
            self.settings.OPENROUTER_API_URL,
            json=self.build_payload(prompt, max_tokens),
            headers=self._headers(api_key),
            timeout=httpx.Timeout(
                timeout, connect=self.settings.UPSTREAM_CONNECT_TIMEOUT_SECONDS
            ),
        )

        try:
            response = await self._client.send(request, stream=True)
        except httpx.TimeoutException as exc:
            logger.warning("Upstream request timed out: %s", exc.__class__.__name__)
            raise UpstreamTimeoutError() from exc
        except httpx.TransportError as exc:
            logger.warning("Upstream unreachable: %s", exc.__class__.__name__)
            raise UpstreamConnectionError() from exc

        if response.is_success:
            return response

        try:
            body = await response.aread()
        except httpx.HTTPError:
            body = b""
        finally:
            await response.aclose()

        message = extract_error_message(body, response.status_code)
        logger.error(
            "Upstream returned an error status",
            extra={"status_code": response.status_code, "upstream_error": message},
        )
        raise UpstreamHTTPError(message, status_code=response.status_code)
