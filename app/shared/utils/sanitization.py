"""Text sanitization for outbound message bodies and previews."""

import html
import re

import nh3

_WHITESPACE_RE = re.compile(r"[ \t]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")
_HTML_TAG_RE = re.compile(
    r"</?(?:p|br|div|span|a|b|i|u|strong|em|ul|ol|li|h[1-6]|table|thead|tbody|tr|td|th|img|hr|blockquote)\b[^>]*>",
    re.IGNORECASE,
)


def looks_like_html(template: str | None) -> bool:
    """True when an authored body contains real markup tags.

    Text such as "<your code>" or "a < b" is not markup and stays plain.
    """
    return bool(template) and _HTML_TAG_RE.search(template) is not None


def html_to_text(value: str) -> str:
    """Strip all HTML tags (nh3 with an empty allow-list) and unescape entities.

    Used to derive the plain-text part of an email whose body was authored
    as HTML.
    """
    if not value:
        return value
    with_breaks = re.sub(r"(?i)<br\s*/?>|</p>", "\n", value)
    cleaned = nh3.clean(with_breaks, tags=set(), attributes={})
    text = html.unescape(cleaned)
    text = _WHITESPACE_RE.sub(" ", text)
    return _BLANK_LINES_RE.sub("\n\n", text).strip()


def preview(value: str | None, length: int) -> str:
    """Return the first `length` characters of value (empty string for None)."""
    if not value:
        return ""
    return value[:length]
