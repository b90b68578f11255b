"""Parsing of the upstream chat-completions SSE stream.

OpenRouter (and the OpenAI-compatible providers behind it) stream
`data: {json}` events separated by a blank line. TCP chunking splits those
events, and the JSON inside them, at arbitrary byte offsets, so the parser
buffers text and only hands out events once their terminating blank line
has arrived.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any


logger = logging.getLogger(__name__)


DONE_SENTINEL = "[DONE]"
UNKNOWN_API_ERROR = "Unknown API error"

# Raw non-JSON bodies longer than this are not trusted as chapter text
MAX_RAW_FALLBACK_CHARS = 10_000
SSE_FIELD_PREFIXES = ("data:", "event:", "id:", ":")


@dataclass(frozen=True)
class UpstreamEvent:
    """One complete upstream SSE event; `data` joins its data lines."""

    data: str


@dataclass(frozen=True)
class ContentMessage:
    text: str


@dataclass(frozen=True)
class ErrorMessage:
    message: str


@dataclass(frozen=True)
class DoneMessage:
    pass


NormalizedMessage = ContentMessage | ErrorMessage | DoneMessage


def parse_event_block(block: str) -> UpstreamEvent | None:
    """Collect the `data:` lines of one event block.

    Both `data:` and `data: ` are accepted. Other fields (`event:`, `id:`,
    `retry:`) and comment lines are ignored; a block without data lines,
    such as a keep-alive comment, yields None.
    """
    data_lines: list[str] = []
    for line in block.split("\n"):
        if not line.startswith("data:"):
            continue
        value = line[5:]
        if value.startswith(" "):
            value = value[1:]
        data_lines.append(value)

    if not data_lines:
        return None
    return UpstreamEvent(data="\n".join(data_lines))


class SSEEventParser:
    """Incremental SSE event splitter.

    `feed` may be called with text of any length. Events are only split on a
    blank line, never on a single newline, so output does not depend on where
    the input was chunked. Text after the last blank line stays buffered; if
    the stream ends there, that partial block is dropped.
    """

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Text received after the last complete event."""
        return self._buffer

    def feed(self, text: str) -> list[UpstreamEvent]:
        if not text:
            return []

        # Normalizing the whole buffer also joins a CRLF split across feeds
        self._buffer = (self._buffer + text).replace("\r\n", "\n")

        events: list[UpstreamEvent] = []
        while True:
            separator = self._buffer.find("\n\n")
            if separator == -1:
                break
            block = self._buffer[:separator]
            self._buffer = self._buffer[separator + 2 :]

            event = parse_event_block(block)
            if event is not None:
                events.append(event)
        return events


def _first_choice(payload: dict[str, Any]) -> dict[str, Any] | None:
    choices = payload.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return None


def _nested_str(container: Any, key: str) -> str | None:
    if isinstance(container, dict):
        value = container.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def extract_delta_content(payload: dict[str, Any]) -> str | None:
    """Return the text carried by a streamed completion chunk, if any."""
    choice = _first_choice(payload)
    if choice is None:
        return None
    return _nested_str(choice.get("delta"), "content") or _nested_str(
        choice.get("message"), "content"
    )


def _error_text(error: Any) -> str:
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str) and message:
            return message
        return UNKNOWN_API_ERROR
    if isinstance(error, str) and error:
        return error
    return UNKNOWN_API_ERROR


def decode_upstream_payload(data: str) -> list[NormalizedMessage]:
    """Turn the data of one upstream event into normalized messages.

    An event may carry both content and an error, in which case the content
    comes first. Malformed JSON is skipped: providers interleave control
    messages that are not JSON.
    """
    if data == DONE_SENTINEL:
        return [DoneMessage()]

    try:
        payload = json.loads(data)
    except ValueError:
        logger.debug("Skipping non-JSON upstream event (%d chars)", len(data))
        return []

    if not isinstance(payload, dict):
        return []

    messages: list[NormalizedMessage] = []
    content = extract_delta_content(payload)
    if content:
        messages.append(ContentMessage(text=content))

    error = payload.get("error")
    if error:
        messages.append(ErrorMessage(message=_error_text(error)))
    return messages


def fallback_to_json(text: str) -> str | None:
    """Extract chapter text from a body that was not a usable SSE stream.

    Some providers answer with a single non-streaming JSON document, for
    example on errors or for very short completions.
    """
    if not text:
        return None

    try:
        payload = json.loads(text)
    except ValueError:
        stripped = text.lstrip()
        if len(text) < MAX_RAW_FALLBACK_CHARS and not stripped.startswith(
            SSE_FIELD_PREFIXES
        ):
            return text
        return None

    if not isinstance(payload, dict):
        return None

    choice = _first_choice(payload)
    candidates = (
        _nested_str(choice.get("message"), "content") if choice else None,
        _nested_str(choice, "text"),
        _nested_str(payload, "content"),
        _nested_str(payload, "message"),
    )
    for candidate in candidates:
        if candidate:
            return candidate
    return None


def extract_error_message(body: str | bytes, status_code: int) -> str:
    """Pick a human-readable message out of an upstream error body."""
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")

    fallback = f"API error: {status_code}"
    try:
        payload = json.loads(body)
    except ValueError:
        return fallback

    if not isinstance(payload, dict):
        return fallback

    error = payload.get("error")
    message = _nested_str(error, "message")
    if message:
        return message
    if isinstance(error, str) and error:
        return error
    message = _nested_str(payload, "message")
    return message or fallback
