"""A naive n-gram index for text search."""

from __future__ import annotations

import re

_IGNORED = re.compile(r"[\s\-_&]")


def clean(text: object) -> str:
    """Lower-case the text and drop whitespace and the characters '-', '_' and '&'."""
    return _IGNORED.sub("", str(text).lower().strip())


def search_bound(query: object) -> str | None:
    """The first (up to) three characters of the cleaned query, or None if nothing is left."""
    cleaned = clean(query)
    return cleaned[:3] or None


def extract(text: object) -> list[str]:
    """All distinct 1-, 2- and 3-character parts of the cleaned text, sorted."""
    cleaned = clean(text)
    if len(cleaned.encode("utf-8")) < 3:
        return [cleaned] if cleaned else []
    grams = {
        cleaned[start:start + size]
        for size in (1, 2, 3)
        for start in range(len(cleaned) - size + 1)
    }
    return sorted(grams)