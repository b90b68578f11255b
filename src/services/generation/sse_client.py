"""Consumer side of the relay's SSE stream.

Used by `scripts/stream_chapter.py` and the test-suite to turn the bytes
of `/api/v1/generate` back into messages.
"""

from __future__ import annotations

import codecs
import json
from collections.abc import AsyncIterable, Callable
from dataclasses import dataclass, field
from typing import Any

from services.generation.sse import DONE_SENTINEL, SSEEventParser


async def consume_sse(
    chunks: AsyncIterable[bytes | str], on_data: Callable[[Any], None]
) -> None:
    """Call `on_data` with the decoded JSON of every complete event.

    Events are only parsed once their blank-line terminator arrives, so
    chunking never splits a payload. `[DONE]` markers and events whose data
    is not valid JSON are skipped.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    parser = SSEEventParser()

    def _dispatch(text: str) -> None:
        for event in parser.feed(text):
            if event.data == DONE_SENTINEL:
                continue
            try:
                payload = json.loads(event.data)
            except ValueError:
                continue
            on_data(payload)

    async for chunk in chunks:
        _dispatch(decoder.decode(chunk) if isinstance(chunk, bytes) else chunk)
    _dispatch(decoder.decode(b"", final=True))


@dataclass
class StreamResult:
    prompt: str | None = None
    content: str = ""
    errors: list[str] = field(default_factory=list)
    done: bool = False


async def collect_stream(chunks: AsyncIterable[bytes | str]) -> StreamResult:
    """Consume a relay stream into a single StreamResult."""
    result = StreamResult()
    parts: list[str] = []

    def _on_data(message: Any) -> None:
        if not isinstance(message, dict):
            return
        kind = message.get("type")
        if kind == "prompt":
            result.prompt = message.get("content")
        elif kind == "content":
            parts.append(message.get("content") or "")
        elif kind == "error":
            result.errors.append(message.get("error") or "")
        elif kind == "done":
            result.done = True

    await consume_sse(chunks, _on_data)
    result.content = "".join(parts)
    return result
