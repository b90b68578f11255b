"""JSON envelopes for non-streaming API responses.

Streaming endpoints answer with `text/event-stream`; everything else (health,
and errors raised before a stream is opened) uses these envelopes.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ApiResponse[T](BaseModel):
    """Standard API response wrapper.

    Attributes:
        success: Whether the request was successful.
        data: The response payload (when success is True).
        message: A human-readable message about the response.
        error: Error details (when success is False).
    """

    success: bool = True
    data: T | None = None
    message: str = "Operation completed successfully"
    error: dict[str, Any] | None = None


class ErrorResponse(ApiResponse[None]):
    """Error envelope; `message` is safe to show to the user as-is."""

    success: bool = False
    message: str = "Er ging iets mis"
    error: dict[str, Any] | None = None
