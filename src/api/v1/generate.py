"""Streaming chapter generation and section rewrite endpoints."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Annotated

import httpx
from fastapi import APIRouter, Depends, Header
from fastapi.responses import StreamingResponse

from core.config import Settings, get_settings
from core.exceptions import MissingApiKeyError
from core.ratelimit import check_rate_limit
from schemas.generation import GenerateRequest, RewriteRequest
from services.generation.openrouter_client import OpenRouterClient
from services.generation.prompts import build_prompt_with_context, build_rewrite_prompt
from services.generation.relay import StreamRelay
from services.generation.token_budget import (
    GenerationRequestParams,
    estimate_max_tokens,
    explain_token_budget,
)


logger = logging.getLogger(__name__)

router = APIRouter(tags=["generation"])

API_KEY_HEADER = "X-OpenRouter-Key"
REWRITE_MAX_TOKENS = 4096

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    # Stop nginx from buffering the stream
    "X-Accel-Buffering": "no",
}


def get_upstream_transport() -> httpx.AsyncBaseTransport | None:
    """Transport for the upstream client; None uses the network."""
    return None


def resolve_api_key(header_key: str | None, settings: Settings) -> str:
    if header_key and header_key.strip():
        return header_key.strip()
    if settings.OPENROUTER_API_KEY:
        return settings.OPENROUTER_API_KEY
    raise MissingApiKeyError()


async def _stream_completion(
    *,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None,
    api_key: str,
    prompt: str,
    max_tokens: int,
    timeout: float,
    relay_prompt: str | None,
) -> StreamingResponse:
    """Open the upstream stream, then relay it as the response body.

    Upstream failures before the first byte raise and become a JSON error
    response; afterwards they are reported inside the stream.
    """
    client = OpenRouterClient(settings, transport=transport)
    try:
        upstream = await client.open_stream(api_key, prompt, max_tokens, timeout)
    except BaseException:
        await client.aclose()
        raise

    relay = StreamRelay(prompt=relay_prompt)

    async def event_stream() -> AsyncIterator[str]:
        try:
            async for event in relay.relay(upstream.aiter_bytes()):
                yield event
        finally:
            await upstream.aclose()
            await client.aclose()

    return StreamingResponse(
        event_stream(), media_type="text/event-stream", headers=SSE_HEADERS
    )


@router.post("/generate", dependencies=[Depends(check_rate_limit)])
async def generate_chapter(
    body: GenerateRequest,
    settings: Annotated[Settings, Depends(get_settings)],
    transport: Annotated[
        httpx.AsyncBaseTransport | None, Depends(get_upstream_transport)
    ],
    openrouter_key: Annotated[str | None, Header(alias=API_KEY_HEADER)] = None,
) -> StreamingResponse:
    """Stream a generated chapter as Server-Sent Events.

    Events are `{"type": "prompt"}` first, then `content` and `error`
    events, and always a final `done`.
    """
    api_key = resolve_api_key(openrouter_key, settings)

    prior = body.eerdere_hoofdstukken
    prompt = build_prompt_with_context(body.form, prior)
    params = GenerationRequestParams.from_form(body.form, prior_chapter_count=len(prior))
    max_tokens = estimate_max_tokens(params)
    logger.info("Generating chapter: %s", explain_token_budget(max_tokens, params))

    return await _stream_completion(
        settings=settings,
        transport=transport,
        api_key=api_key,
        prompt=prompt,
        max_tokens=max_tokens,
        timeout=settings.OPENROUTER_TEXT_TIMEOUT_SECONDS,
        relay_prompt=prompt,
    )


@router.post("/rewrite", dependencies=[Depends(check_rate_limit)])
async def rewrite_section(
    body: RewriteRequest,
    settings: Annotated[Settings, Depends(get_settings)],
    transport: Annotated[
        httpx.AsyncBaseTransport | None, Depends(get_upstream_transport)
    ],
    openrouter_key: Annotated[str | None, Header(alias=API_KEY_HEADER)] = None,
) -> StreamingResponse:
    """Stream a rewritten section; no `prompt` event is sent."""
    api_key = resolve_api_key(openrouter_key, settings)

    return await _stream_completion(
        settings=settings,
        transport=transport,
        api_key=api_key,
        prompt=build_rewrite_prompt(body),
        max_tokens=REWRITE_MAX_TOKENS,
        timeout=settings.OPENROUTER_REWRITE_TIMEOUT_SECONDS,
        relay_prompt=None,
    )
