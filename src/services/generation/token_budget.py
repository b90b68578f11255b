"""Token budget estimation for chapter generation.

Sizes `max_tokens` for the upstream request from the requested chapter
length instead of a fixed high limit. Uses word-count heuristics only;
no tokenizer is involved.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from services.generation.templates import WORDS_PER_LENGTE, get_template


logger = logging.getLogger(__name__)


TOKENS_PER_WORD = 1.33

SECTION_OVERHEAD_TOKENS = 50
IMAGE_OVERHEAD_TOKENS = 30
MAX_ESTIMATED_IMAGES = 6
SOURCES_OVERHEAD_TOKENS = 300
PRIOR_CONTEXT_OVERHEAD_TOKENS = 100

SAFETY_MARGIN_PERCENTAGE = 0.30
MIN_MAX_TOKENS = 600
DEFAULT_MAX_TOKENS = 1500
ABSOLUTE_MAX_TOKENS = 4096

DEFAULT_SECTION_COUNT = 6
DEFAULT_TARGET_WORDS = 1500

LENGTH_TOLERANCE_PERCENT = 15


class MalformedWordCountError(ValueError):
    """Raised for a word count that is present but not a positive integer."""


@dataclass(frozen=True)
class GenerationRequestParams:
    target_words: int | None = None
    size_preset: str = "medium"
    template: str = "klassiek"
    custom_sections: Sequence[Any] | None = None
    include_images: bool = False
    include_sources: bool = False
    prior_chapter_count: int = 0

    @classmethod
    def from_form(cls, form: Any, prior_chapter_count: int = 0) -> GenerationRequestParams:
        """Build estimator input from a `schemas.generation.ChapterForm`."""
        return cls(
            target_words=form.woorden_aantal,
            size_preset=form.lengte,
            template=form.template,
            # Leftover custom sections only count for the custom template
            custom_sections=form.custom_secties if form.template == "custom" else None,
            include_images=form.met_afbeeldingen,
            include_sources=form.met_bronnen,
            prior_chapter_count=prior_chapter_count,
        )


def resolve_target_words(params: GenerationRequestParams) -> int:
    """Return the word count to aim for.

    None or 0 means "not provided" and selects the size preset. Negative
    or non-integer values raise MalformedWordCountError.
    """
    words = params.target_words
    if isinstance(words, bool) or not (words is None or isinstance(words, int)):
        raise MalformedWordCountError(f"Invalid target word count: {words!r}")
    if not words:
        return WORDS_PER_LENGTE.get(params.size_preset, DEFAULT_TARGET_WORDS)  # type: ignore[call-overload]
    if words < 0:
        raise MalformedWordCountError(f"Invalid target word count: {words!r}")
    return words


def resolve_section_count(params: GenerationRequestParams) -> int:
    if params.custom_sections:
        return len(params.custom_sections)

    template = get_template(params.template)
    if template is not None:
        required = len(template.required_sections)
        if required > 0:
            return required
    return DEFAULT_SECTION_COUNT


def estimate_max_tokens(params: GenerationRequestParams) -> int:
    """Estimate `max_tokens` for one chapter, clamped to [600, 4096].

    Never raises: any failure, including a malformed word count, yields
    DEFAULT_MAX_TOKENS.
    """
    try:
        target_words = resolve_target_words(params)
        section_count = resolve_section_count(params)

        base_tokens = math.ceil(target_words * TOKENS_PER_WORD)

        overhead = section_count * SECTION_OVERHEAD_TOKENS
        if params.include_images:
            estimated_images = min(section_count, MAX_ESTIMATED_IMAGES)
            overhead += estimated_images * IMAGE_OVERHEAD_TOKENS
        if params.include_sources:
            overhead += SOURCES_OVERHEAD_TOKENS
        if params.prior_chapter_count > 0:
            overhead += PRIOR_CONTEXT_OVERHEAD_TOKENS

        with_margin = math.ceil((base_tokens + overhead) * (1 + SAFETY_MARGIN_PERCENTAGE))
        clamped = max(MIN_MAX_TOKENS, min(with_margin, ABSOLUTE_MAX_TOKENS))

        logger.debug(
            "Token budget target_words=%s sections=%s base=%s overhead=%s "
            "with_margin=%s clamped=%s template=%s",
            target_words,
            section_count,
            base_tokens,
            overhead,
            with_margin,
            clamped,
            params.template,
        )
        return clamped
    except Exception as exc:  # noqa: BLE001
        logger.warning("Token budget estimation failed, using default: %s", exc)
        return DEFAULT_MAX_TOKENS


def get_length_guidance(params: GenerationRequestParams) -> str:
    """Length instruction appended to the chapter prompt (target ±15%)."""
    try:
        target_words = resolve_target_words(params)
    except MalformedWordCountError:
        target_words = DEFAULT_TARGET_WORDS

    min_words = target_words * (100 - LENGTH_TOLERANCE_PERCENT) // 100
    max_words = -(-target_words * (100 + LENGTH_TOLERANCE_PERCENT) // 100)
    return (
        f"\n\nLENGTE VEREISTE: Schrijf ongeveer {target_words} woorden "
        f"(tussen {min_words}-{max_words} woorden). Houd het compact maar compleet."
    )


def explain_token_budget(max_tokens: int, params: GenerationRequestParams) -> str:
    try:
        target_words = resolve_target_words(params)
    except MalformedWordCountError:
        target_words = DEFAULT_TARGET_WORDS
    estimated_words = math.floor(max_tokens / TOKENS_PER_WORD)
    return (
        f"max_tokens={max_tokens} (target: {target_words} words, "
        f"allows: ~{estimated_words} words with overhead)"
    )
