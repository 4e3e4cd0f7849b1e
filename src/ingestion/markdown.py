"""Markdown helpers for issue bodies: image links and plain text."""

import re

# ![alt](http(s)://...) with no whitespace or ')' inside the URL
IMAGE_LINK_PATTERN = re.compile(r"!\[.*?\]\((https?://[^\s)]+)\)")

# Looser form used for content-type detection (any target, greedy alt)
IMAGE_SYNTAX_PATTERN = re.compile(r"!\[.*\]\(.*\)")


def extract_image_urls(body: str) -> list[str]:
    """Return every embedded image URL in document order."""
    return IMAGE_LINK_PATTERN.findall(body or "")


def extract_text(body: str) -> str:
    """Strip image links and surrounding whitespace, leaving the prose."""
    return IMAGE_LINK_PATTERN.sub("", body or "").strip()


def has_image_syntax(body: str) -> bool:
    """True if the body contains markdown image syntax."""
    return bool(IMAGE_SYNTAX_PATTERN.search(body or ""))
