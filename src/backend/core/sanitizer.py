"""
Plain-text sanitization for user-supplied strings.

Titles, labels, nicknames, opinions and free-text answers are rendered by the
frontend as text, so markup is stripped rather than escaped. The core assumes
everything it receives has already been through here.
"""

import html
import re

_SCRIPT_BLOCK = re.compile(r"<(script|style|iframe|object|embed)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_TAG = re.compile(r"<[^>]*>")


def sanitize_text(value: str | None) -> str | None:
    """Strip HTML tags (and the contents of script-like blocks) from text."""
    if not value:
        return value
    cleaned = _SCRIPT_BLOCK.sub("", value)
    cleaned = _TAG.sub("", cleaned)
    # Entities are decoded once so "&lt;b&gt;" cannot smuggle a tag back in
    cleaned = _TAG.sub("", html.unescape(cleaned))
    return cleaned.strip()


def sanitize_list(values: list[str] | None) -> list[str]:
    """Sanitize a list of short strings (tags), dropping empties."""
    if not values:
        return []
    return [v for v in (sanitize_text(item) for item in values) if v]
