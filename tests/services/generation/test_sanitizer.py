"""Tests for HTML to Markdown sanitization of model output."""

from __future__ import annotations

import logging
from unittest.mock import patch

import pytest

from services.generation.sanitizer import sanitize_html_to_markdown


class TestConversions:
    """Formatting tags become their Markdown equivalents."""

    @pytest.mark.parametrize(
        ("html", "expected"),
        [
            ("<strong>vet</strong>", "**vet**"),
            ("<b>vet</b>", "**vet**"),
            ("<em>schuin</em>", "_schuin_"),
            ("<i>schuin</i>", "_schuin_"),
            ("regel<br>volgende", "regel\nvolgende"),
            ("regel<br />volgende", "regel\nvolgende"),
            ("<p>alinea</p>", "alinea\n\n"),
            ("<h1>Titel</h1>", "# Titel\n"),
            ("<h3>Kop</h3>", "### Kop\n"),
            ("<ul><li>een</li><li>twee</li></ul>", "\n- een\n- twee\n\n"),
        ],
    )
    def test_converts_supported_tags(self, html: str, expected: str) -> None:
        assert sanitize_html_to_markdown(html) == expected

    def test_attributes_are_dropped(self) -> None:
        assert (
            sanitize_html_to_markdown('<strong class="x" onclick="evil()">a</strong>')
            == "**a**"
        )

    def test_unpaired_tags_from_split_fragments(self) -> None:
        assert sanitize_html_to_markdown("lo <b>Wor") == "lo **Wor"
        assert sanitize_html_to_markdown("ld</b>!") == "ld**!"
        assert sanitize_html_to_markdown("<em>begin") == "_begin"

    def test_nested_formatting(self) -> None:
        assert sanitize_html_to_markdown("<p><b>Let op:</b> water</p>") == (
            "**Let op:** water\n\n"
        )

    def test_safe_entities_are_decoded(self) -> None:
        assert sanitize_html_to_markdown("a&nbsp;b &quot;c&quot; d&#39;s") == (
            "a b \"c\" d's"
        )

    def test_markup_entities_stay_encoded(self) -> None:
        assert sanitize_html_to_markdown("&lt;script&gt;") == "&lt;script&gt;"


class TestStripping:
    """Disallowed markup never reaches the client."""

    @pytest.mark.parametrize(
        "html",
        [
            "<script>alert(1)</script>",
            "<style>body{}</style>",
            '<iframe src="https://evil.test"></iframe>',
            "<noscript>x</noscript>",
            "<svg><circle r='1'/></svg>",
            "<form action='/x'><input></form>",
            "<!-- verborgen -->",
        ],
    )
    def test_drops_element_with_content(self, html: str) -> None:
        assert sanitize_html_to_markdown(f"voor{html}na") == "voorna"

    def test_strips_unknown_tags_but_keeps_text(self) -> None:
        assert sanitize_html_to_markdown('<div><span id="a">tekst</span></div>') == (
            "tekst"
        )

    def test_reassembled_tag_is_removed(self) -> None:
        result = sanitize_html_to_markdown("<scr<script>x</script>ipt>alert(1)")
        assert "<" not in result

    def test_comparison_is_not_a_tag(self) -> None:
        assert sanitize_html_to_markdown("als a < b en b > c") == "als a < b en b > c"

    @pytest.mark.parametrize(
        "text",
        [
            "Als a<b en b>c, dan geldt ook a<c.",
            "Voor x<y geldt: kies y zo dat y>0.",
            "Stel n<i en i>0, dan is n negatief.",
            "Als p<q\nen q>r, dan volgt niets.",
        ],
    )
    def test_inequalities_without_spaces_are_kept(self, text: str) -> None:
        assert sanitize_html_to_markdown(text) == text

    def test_boolean_and_valued_attributes_still_match(self) -> None:
        html = '<script async src="x.js"></script><b data-id=7>tekst</b>'
        assert sanitize_html_to_markdown(html) == "**tekst**"

    def test_plain_markdown_untouched(self) -> None:
        text = "## Kop\n\n- punt **vet** en _schuin_\n"
        assert sanitize_html_to_markdown(text) == text

    def test_empty_string(self) -> None:
        assert sanitize_html_to_markdown("") == ""


class TestIdempotence:
    """Sanitizing twice gives the same result as sanitizing once."""

    @pytest.mark.parametrize(
        "html",
        [
            "<p>Een <strong>vet</strong> woord</p><ul><li>a</li></ul>",
            "<b><b>dubbel</b></b>",
            "<p><p>nested</p></p>",
            "&amp;nbsp; en &nbsp;",
            "<h2>Kop <em>schuin</em></h2>tekst<br/>",
            "a < b <i>c</i> > d",
        ],
    )
    def test_idempotent(self, html: str) -> None:
        once = sanitize_html_to_markdown(html)
        assert sanitize_html_to_markdown(once) == once


class TestFailureHandling:
    def test_internal_error_returns_escaped_input(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        with patch(
            "services.generation.sanitizer._single_pass",
            side_effect=RuntimeError("boom"),
        ):
            with caplog.at_level(logging.WARNING):
                result = sanitize_html_to_markdown("<b>x</b>")

        assert result == "&lt;b&gt;x&lt;/b&gt;"
        assert "sanitization failed" in caplog.text
