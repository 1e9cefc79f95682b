"""Map page titles to filesystem-friendly directory names."""

from __future__ import annotations

import re


_NON_WORD_RE = re.compile(r"[^a-z0-9]+")
MAX_SLUG_LENGTH = 80


def slugify(value: str, *, fallback: str = "page") -> str:
    """Return a lowercase, hyphen-separated slug derived from ``value``."""

    value = _NON_WORD_RE.sub("-", value.lower().strip()).strip("-")
    if not value:
        return fallback
    return value[:MAX_SLUG_LENGTH].rstrip("-") or fallback
