#!/usr/bin/env python3
"""Generate a chapter through a running API and print it as it streams.

Usage (local, with the API on port 8000):
  python scripts/stream_chapter.py "Fotosynthese" --niveau havo --leerjaar 2

The OpenRouter key is read from --api-key or the OPENROUTER_API_KEY
environment variable and sent as X-OpenRouter-Key.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys
from typing import Any

import httpx

from services.generation.sse_client import consume_sse


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:8000"


def _print_message(message: Any, show_prompt: bool) -> None:
    if not isinstance(message, dict):
        return
    kind = message.get("type")
    if kind == "content":
        sys.stdout.write(message.get("content", ""))
        sys.stdout.flush()
    elif kind == "prompt" and show_prompt:
        print(message.get("content", ""), file=sys.stderr)
    elif kind == "error":
        logger.error("Stream error: %s", message.get("error"))
    elif kind == "done":
        sys.stdout.write("\n")


async def stream_chapter(
    base_url: str, api_key: str, form: dict[str, Any], show_prompt: bool
) -> int:
    url = f"{base_url.rstrip('/')}/api/v1/generate"
    timeout = httpx.Timeout(180.0, connect=10.0)

    async with httpx.AsyncClient(timeout=timeout) as client:
        async with client.stream(
            "POST",
            url,
            json={"formData": form, "eerdereHoofdstukken": []},
            headers={"X-OpenRouter-Key": api_key},
        ) as response:
            if response.status_code != 200:
                body = await response.aread()
                logger.error(
                    "Request failed (%d): %s",
                    response.status_code,
                    body.decode("utf-8", errors="replace"),
                )
                return 1
            await consume_sse(
                response.aiter_bytes(), lambda m: _print_message(m, show_prompt)
            )
    return 0


def main():
    """CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Stream a generated chapter")
    parser.add_argument("onderwerp", help="Topic of the chapter")
    parser.add_argument("--niveau", default="havo")
    parser.add_argument("--leerjaar", type=int, default=1)
    parser.add_argument("--lengte", choices=["kort", "medium", "lang"], default="kort")
    parser.add_argument("--woorden", type=int, default=None, help="Exact word count")
    parser.add_argument("--template", default="klassiek")
    parser.add_argument("--bronnen", action="store_true", help="Include sources")
    parser.add_argument(
        "--zonder-afbeeldingen", action="store_true", help="No image markers"
    )
    parser.add_argument("--show-prompt", action="store_true")
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL)
    parser.add_argument("--api-key", default=os.getenv("OPENROUTER_API_KEY"))

    args = parser.parse_args()
    if not args.api_key:
        parser.error("--api-key or OPENROUTER_API_KEY is required")

    form = {
        "onderwerp": args.onderwerp,
        "niveau": args.niveau,
        "leerjaar": args.leerjaar,
        "lengte": args.lengte,
        "woordenAantal": args.woorden,
        "metAfbeeldingen": not args.zonder_afbeeldingen,
        "metBronnen": args.bronnen,
        "template": args.template,
    }
    sys.exit(asyncio.run(stream_chapter(args.base_url, args.api_key, form, args.show_prompt)))


if __name__ == "__main__":
    main()
