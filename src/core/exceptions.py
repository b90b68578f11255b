"""Domain exceptions for the chapter generation pipeline.

Each exception carries a stable `error_code` (used as the `type` of the error
envelope) and the HTTP status it maps to. They are raised before any SSE
stream is opened; once streaming has started, failures are reported as
`error` events instead.
"""

from __future__ import annotations


class GenerationError(Exception):
    """Base class for generation pipeline errors."""

    error_code: str = "generation_error"
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        error_code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code is not None:
            self.error_code = error_code
        if status_code is not None:
            self.status_code = status_code

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.error_code}: {self.message}"


class MissingApiKeyError(GenerationError):
    error_code = "missing_api_key"
    status_code = 401

    def __init__(
        self,
        message: str = (
            "API key is vereist. Stel je OpenRouter API key in via de instellingen."
        ),
    ) -> None:
        super().__init__(message)


class UpstreamTimeoutError(GenerationError):
    error_code = "upstream_timeout"
    status_code = 504

    def __init__(
        self, message: str = "Generatie duurde te lang. Probeer het opnieuw."
    ) -> None:
        super().__init__(message)


class UpstreamConnectionError(GenerationError):
    error_code = "upstream_unreachable"
    status_code = 502

    def __init__(
        self,
        message: str = "De AI-service is niet bereikbaar. Probeer het later opnieuw.",
    ) -> None:
        super().__init__(message)


class UpstreamHTTPError(GenerationError):
    """The upstream answered with a non-2xx status; the status is propagated."""

    error_code = "upstream_error"

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message, status_code=status_code)
