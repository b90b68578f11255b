"""HTML to Markdown sanitization for model output.

Models occasionally answer with inline HTML even when asked for Markdown.
The relay runs every outbound fragment through `sanitize_html_to_markdown`,
which converts the small set of formatting tags a chapter needs and strips
everything else. The function works on fragments as well as whole documents:
a tag whose partner lives in another fragment is converted on its own.
"""

import logging
import re


logger = logging.getLogger(__name__)


# Elements removed together with everything inside them
DROPPED_ELEMENTS = (
    "script",
    "style",
    "iframe",
    "object",
    "embed",
    "noscript",
    "svg",
    "form",
)

# Only entities that cannot produce markup when decoded
_ENTITIES = {
    "&nbsp;": " ",
    "&quot;": '"',
    "&#39;": "'",
}

_FLAGS = re.IGNORECASE | re.DOTALL

# Boolean attributes accepted without a value
_BOOLEAN_ATTRS = (
    "async",
    "defer",
    "hidden",
    "disabled",
    "checked",
    "selected",
    "allowfullscreen",
)

# Attributes inside a start tag. Values are required apart from the boolean
# attributes above, so prose like "a<b en b>c" is never read as a tag.
_ATTRS = (
    r"(?:\s+(?:[\w:.-]+\s*=\s*(?:\"[^\"<>\n]*\"|'[^'<>\n]*'|[^\s\"'<>=`]+)"
    r"|(?:" + "|".join(_BOOLEAN_ATTRS) + r")(?=[\s/>])))*"
)


def _start_tag(names: str) -> str:
    return r"<(?:" + names + r")" + _ATTRS + r"\s*/?>"


def _end_tag(names: str) -> str:
    return r"</(?:" + names + r")\s*>"


_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_DROPPED_RE = re.compile(
    r"<(" + "|".join(DROPPED_ELEMENTS) + r")" + _ATTRS + r"\s*>.*?</\1\s*>", _FLAGS
)

_BOLD_PAIR_RE = re.compile(r"<(strong|b)" + _ATTRS + r"\s*>(.*?)</\1\s*>", _FLAGS)
_ITALIC_PAIR_RE = re.compile(r"<(em|i)" + _ATTRS + r"\s*>(.*?)</\1\s*>", _FLAGS)
_BR_RE = re.compile(_start_tag("br"), re.IGNORECASE)
_PARAGRAPH_PAIR_RE = re.compile(r"<p" + _ATTRS + r"\s*>(.*?)</p\s*>", _FLAGS)
_PARAGRAPH_CLOSE_RE = re.compile(_end_tag("p"), re.IGNORECASE)
_PARAGRAPH_OPEN_RE = re.compile(_start_tag("p"), re.IGNORECASE)
_HEADER_PAIR_RE = re.compile(r"<h([1-4])" + _ATTRS + r"\s*>(.*?)</h\1\s*>", _FLAGS)
_LIST_ITEM_PAIR_RE = re.compile(r"<li" + _ATTRS + r"\s*>(.*?)</li\s*>", _FLAGS)
_LIST_ITEM_OPEN_RE = re.compile(_start_tag("li"), re.IGNORECASE)
_LIST_ITEM_CLOSE_RE = re.compile(_end_tag("li"), re.IGNORECASE)
_LIST_RE = re.compile(_start_tag("ul|ol") + "|" + _end_tag("ul|ol"), re.IGNORECASE)

# Halves of a bold/italic pair that was split across fragments
_BOLD_SINGLE_RE = re.compile(
    _start_tag("strong|b") + "|" + _end_tag("strong|b"), re.IGNORECASE
)
_ITALIC_SINGLE_RE = re.compile(
    _start_tag("em|i") + "|" + _end_tag("em|i"), re.IGNORECASE
)

# Anything else with tag syntax; "a < b" and "a<b en b>c" do not match
_ANY_TAG_RE = re.compile(
    _start_tag(r"[A-Za-z][A-Za-z0-9-]*") + "|" + _end_tag(r"[A-Za-z][A-Za-z0-9-]*"),
    re.IGNORECASE,
)


def _header(match: re.Match[str]) -> str:
    return "#" * int(match.group(1)) + " " + match.group(2) + "\n"


def _single_pass(text: str) -> str:
    for entity, replacement in _ENTITIES.items():
        text = text.replace(entity, replacement)

    text = _COMMENT_RE.sub("", text)
    text = _DROPPED_RE.sub("", text)

    text = _BOLD_PAIR_RE.sub(r"**\2**", text)
    text = _ITALIC_PAIR_RE.sub(r"_\2_", text)
    text = _BR_RE.sub("\n", text)

    text = _PARAGRAPH_PAIR_RE.sub("\\1\n\n", text)
    text = _PARAGRAPH_CLOSE_RE.sub("\n\n", text)
    text = _PARAGRAPH_OPEN_RE.sub("", text)

    text = _HEADER_PAIR_RE.sub(_header, text)

    text = _LIST_ITEM_PAIR_RE.sub("- \\1\n", text)
    text = _LIST_ITEM_OPEN_RE.sub("- ", text)
    text = _LIST_ITEM_CLOSE_RE.sub("\n", text)
    text = _LIST_RE.sub("\n", text)

    text = _BOLD_SINGLE_RE.sub("**", text)
    text = _ITALIC_SINGLE_RE.sub("_", text)

    return _ANY_TAG_RE.sub("", text)


def _escape(text: str) -> str:
    return text.replace("<", "&lt;").replace(">", "&gt;")


def sanitize_html_to_markdown(text: str) -> str:
    """Convert inline HTML in `text` to Markdown and strip remaining tags.

    Every substitution replaces markup with something shorter, so repeating
    the pass until nothing changes terminates, and the result is a fixed
    point: sanitizing it again returns it unchanged.

    Never raises. If conversion fails the input is returned with angle
    brackets escaped.
    """
    if not text:
        return text

    try:
        current = text
        while True:
            converted = _single_pass(current)
            if converted == current:
                return converted
            current = converted
    except Exception as exc:  # noqa: BLE001
        logger.warning("HTML sanitization failed, escaping fragment: %s", exc)
        return _escape(text)
