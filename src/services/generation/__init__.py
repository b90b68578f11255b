"""Chapter generation: token budget, prompts, upstream client and SSE relay."""

from .relay import StreamRelay
from .sanitizer import sanitize_html_to_markdown
from .token_budget import GenerationRequestParams, estimate_max_tokens


__all__ = [
    "GenerationRequestParams",
    "StreamRelay",
    "estimate_max_tokens",
    "sanitize_html_to_markdown",
]
