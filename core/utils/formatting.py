"""Sanitising and formatting helpers for submitted listing values."""

from typing import Any, Iterable
import re

import nh3
from markupsafe import escape


# HTML allowed in rich text fields (descriptions, textareas)
POST_ALLOWED_TAGS = {
    "a", "abbr", "address", "b", "blockquote", "br", "caption", "cite",
    "code", "dd", "del", "div", "dl", "dt", "em", "figcaption", "figure",
    "h1", "h2", "h3", "h4", "h5", "h6", "hr", "i", "img", "ins", "li",
    "ol", "p", "pre", "q", "s", "small", "span", "strike", "strong", "sub",
    "sup", "table", "tbody", "td", "tfoot", "th", "thead", "tr", "u", "ul",
}

POST_ALLOWED_ATTRIBUTES = {
    "*": {"class", "id", "title"},
    "a": {"href", "target"},
    "img": {"src", "alt", "width", "height"},
    "td": {"colspan", "rowspan"},
    "th": {"colspan", "rowspan", "scope"},
}

_SCRIPT_STYLE = re.compile(r"<(script|style)[^>]*?>.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^>]*>")
_LONE_LESS_THAN = re.compile(r"<[^>]*?((?=<)|>|$)")
_PERCENT_OCTET = re.compile(r"%[a-f0-9]{2}", re.IGNORECASE)
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def strip_all_tags(text: Any, remove_breaks: bool = False) -> str:
    """
    Strip all HTML tags, including the contents of script and style blocks.

    Args:
        text: Text to strip
        remove_breaks: Whether to collapse line breaks and tabs as well

    Returns:
        Plain text
    """
    if text is None:
        return ""
    text = _SCRIPT_STYLE.sub("", str(text))
    text = _TAG.sub("", text)
    if remove_breaks:
        text = re.sub(r"[\r\n\t ]+", " ", text)
    return text.strip()


def _escape_lone_less_than(text: str) -> str:
    def _replace(match: re.Match) -> str:
        chunk = match.group(0)
        if chunk.endswith(">"):
            return chunk
        return str(escape(chunk))

    return _LONE_LESS_THAN.sub(_replace, text)


def sanitize_text_field(value: Any) -> str:
    """
    Sanitize a single-line text value.

    Strips tags, collapses whitespace (including line breaks), removes
    percent-encoded octets and trims the result. Lone ``<`` characters are
    kept, entity-encoded.

    Args:
        value: Submitted value

    Returns:
        Sanitized string (empty string for None)
    """
    if value is None:
        return ""
    text = str(value)

    if "<" in text:
        text = _escape_lone_less_than(text)
        text = strip_all_tags(text)
        # Tag removal can glue an escaped "<" to a line break
        text = text.replace("<\n", "&lt;\n")

    text = re.sub(r"[\r\n\t ]+", " ", text)

    found = False
    while _PERCENT_OCTET.search(text):
        text = _PERCENT_OCTET.sub("", text)
        found = True
    if found:
        text = re.sub(r" +", " ", text)

    return text.strip()


def strip_slashes(value: Any) -> str:
    """Remove one level of backslash escaping from a submitted string."""
    if value is None:
        return ""
    return re.sub(r"\\(.?)", r"\1", str(value), flags=re.DOTALL)


def sanitize_post_html(value: Any) -> str:
    """Sanitize rich text down to the HTML subset allowed in listing content."""
    if value is None:
        return ""
    return nh3.clean(
        str(value),
        tags=POST_ALLOWED_TAGS,
        attributes=POST_ALLOWED_ATTRIBUTES,
    )


def sanitize_link_html(value: Any) -> str:
    """Sanitize informational text, keeping only links."""
    if value is None:
        return ""
    return nh3.clean(str(value), tags={"a"}, attributes={"a": {"href"}})


def leading_int(value: Any) -> int:
    """
    Convert a submitted value to a signed integer.

    Leading digits are honoured (``"-12abc"`` is -12); anything else is 0.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    match = _LEADING_INT.match(str(value or ""))
    if not match:
        return 0
    return int(match.group(1))


def absint(value: Any) -> int:
    """Convert a submitted value to a non-negative integer."""
    return abs(leading_int(value))


def join_classes(classes: str | Iterable[str] | None) -> str:
    """Join CSS classes into a single attribute value."""
    if not classes:
        return ""
    if isinstance(classes, str):
        return classes
    return " ".join(str(c) for c in classes)
