"""Relay of the upstream completion stream to the browser.

`StreamRelay.relay` consumes the raw upstream byte stream and yields
outbound SSE strings (see `schemas.generation.StreamMessage`):

    prompt?  ->  content | error ...  ->  fallback content?  ->  done

`done` is always emitted exactly once and always last, whatever happens
upstream. The generator is meant to be handed to a `StreamingResponse`;
each yield waits for the ASGI server to take the chunk before the next
upstream read.
"""

from __future__ import annotations

import codecs
import logging
from collections.abc import AsyncIterable, AsyncIterator, Callable

from schemas.generation import StreamMessage
from services.generation.sanitizer import sanitize_html_to_markdown
from services.generation.sse import (
    ContentMessage,
    DoneMessage,
    ErrorMessage,
    SSEEventParser,
    decode_upstream_payload,
    fallback_to_json,
)


logger = logging.getLogger(__name__)


# Raw upstream text kept for the JSON fallback
MAX_FALLBACK_CHARS = 65_536

STREAM_INTERRUPTED_MESSAGE = (
    "De verbinding met de AI-service werd onderbroken. Probeer het opnieuw."
)


def split_partial_tag(text: str) -> tuple[str, str]:
    """Split `text` into (ready, held) around a trailing unclosed tag.

    When the last `<` comes after the last `>`, everything from that `<` on
    may be the start of a tag that continues in the next fragment and is
    held back. This is a position heuristic, not a tokenizer: a literal
    "a < b" is held too, until a later `>` or the end of the stream.
    """
    last_open = text.rfind("<")
    if last_open == -1 or last_open < text.rfind(">"):
        return text, ""
    return text[:last_open], text[last_open:]


class StreamRelay:
    """Single-use relay for one upstream response."""

    def __init__(
        self,
        prompt: str | None = None,
        sanitizer: Callable[[str], str] = sanitize_html_to_markdown,
    ) -> None:
        self.prompt = prompt
        self._sanitize = sanitizer
        self._parser = SSEEventParser()
        self._carry = ""
        self._raw_parts: list[str] = []
        self._raw_size = 0

        self.events_seen = 0
        self.content_events = 0
        self.had_error = False

    @property
    def carry(self) -> str:
        """Partial tag currently held back from the client."""
        return self._carry

    @property
    def raw_text(self) -> str:
        return "".join(self._raw_parts)

    def _remember(self, text: str) -> None:
        room = MAX_FALLBACK_CHARS - self._raw_size
        if room <= 0 or not text:
            return
        piece = text[:room]
        self._raw_parts.append(piece)
        self._raw_size += len(piece)

    def _accept_fragment(self, fragment: str) -> str:
        """Combine with the carry, hold a trailing partial tag, sanitize the rest."""
        ready, self._carry = split_partial_tag(self._carry + fragment)
        return self._sanitize(ready) if ready else ""

    def _flush_carry(self) -> str:
        held, self._carry = self._carry, ""
        return self._sanitize(held) if held else ""

    def _content(self, text: str) -> str:
        self.content_events += 1
        return StreamMessage(type="content", content=text).to_sse()

    def _error(self, message: str) -> str:
        self.had_error = True
        return StreamMessage(type="error", error=message).to_sse()

    def _handle_text(self, text: str) -> list[str]:
        """Feed decoded upstream text and return the outbound events it completes."""
        self._remember(text)
        outbound: list[str] = []
        for event in self._parser.feed(text):
            self.events_seen += 1
            for message in decode_upstream_payload(event.data):
                if isinstance(message, ContentMessage):
                    sanitized = self._accept_fragment(message.text)
                    if sanitized:
                        outbound.append(self._content(sanitized))
                elif isinstance(message, ErrorMessage):
                    logger.warning("Upstream reported an error: %s", message.message)
                    outbound.append(self._error(message.message))
                elif isinstance(message, DoneMessage):
                    logger.debug("Upstream signalled completion")
        return outbound

    def _fallback(self) -> str | None:
        # Only when nothing reached the client and the stream looked broken
        if self.content_events > 0:
            return None
        if not (self.had_error or self.events_seen == 0):
            return None

        recovered = fallback_to_json(self.raw_text)
        if not recovered:
            return None
        sanitized = self._sanitize(recovered)
        if not sanitized:
            return None
        logger.info(
            "Recovered content from non-streaming upstream body",
            extra={"recovered_chars": len(sanitized)},
        )
        return self._content(sanitized)

    async def relay(self, upstream: AsyncIterable[bytes | str]) -> AsyncIterator[str]:
        if self.prompt is not None:
            yield StreamMessage(type="prompt", content=self.prompt).to_sse()

        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            async for chunk in upstream:
                text = decoder.decode(chunk) if isinstance(chunk, bytes) else chunk
                for outbound in self._handle_text(text):
                    yield outbound
            for outbound in self._handle_text(decoder.decode(b"", final=True)):
                yield outbound

            if self._parser.pending.strip():
                logger.debug(
                    "Discarding unterminated upstream event (%d chars)",
                    len(self._parser.pending),
                )
            flushed = self._flush_carry()
            if flushed:
                yield self._content(flushed)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Upstream stream failed mid-response: %s: %s",
                exc.__class__.__name__,
                exc,
            )
            flushed = self._flush_carry()
            if flushed:
                yield self._content(flushed)
            yield self._error(STREAM_INTERRUPTED_MESSAGE)

        recovered = self._fallback()
        if recovered is not None:
            yield recovered

        logger.debug(
            "Stream relay finished",
            extra={
                "events_seen": self.events_seen,
                "content_events": self.content_events,
                "had_error": self.had_error,
            },
        )
        yield StreamMessage(type="done").to_sse()
