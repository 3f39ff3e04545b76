"""
Input Validation — content, tags, levels

Pure functions. Each returns a :class:`MemoryResult`; the first violation
found is the one reported.
"""

from __future__ import annotations

import re
from typing import List, Sequence

from hiermem.errors import INVALID_CONTENT, INVALID_TAGS, MemoryResult
from hiermem.types import LONG_TERM, MEDIUM_TERM, SHORT_TERM, MemoryLevel

# Tags: ASCII letters, digits, underscore, hyphen
_TAG_PATTERN = re.compile(r"[A-Za-z0-9_-]+")

# Recognized spellings (lower-cased) → level
LEVEL_ALIASES = {
    "short_term": SHORT_TERM, "short": SHORT_TERM, "st": SHORT_TERM,
    "medium_term": MEDIUM_TERM, "medium": MEDIUM_TERM, "mt": MEDIUM_TERM,
    "long_term": LONG_TERM, "long": LONG_TERM, "lt": LONG_TERM,
}


def validate_content(content: str, max_length: int) -> MemoryResult[None]:
    """Reject empty content and content longer than ``max_length`` characters."""
    if not content:
        return MemoryResult.failure(INVALID_CONTENT, "Content cannot be empty")
    if len(content) > max_length:
        return MemoryResult.failure(
            INVALID_CONTENT, f"Content too long: {len(content)} > {max_length}"
        )
    return MemoryResult.success()


def validate_tags(
    tags: Sequence[str], max_tag_length: int, max_tag_count: int,
) -> MemoryResult[None]:
    """Check tag count, then each tag for emptiness, length and charset."""
    if len(tags) > max_tag_count:
        return MemoryResult.failure(
            INVALID_TAGS, f"Too many tags: {len(tags)} > {max_tag_count}"
        )
    for tag in tags:
        if not tag:
            return MemoryResult.failure(INVALID_TAGS, "Tag cannot be empty")
        if len(tag) > max_tag_length:
            return MemoryResult.failure(
                INVALID_TAGS,
                f"Tag too long: {tag} ({len(tag)} > {max_tag_length})",
            )
        if not _TAG_PATTERN.fullmatch(tag):
            return MemoryResult.failure(
                INVALID_TAGS, f"Tag contains invalid characters: {tag}"
            )
    return MemoryResult.success()


def validate_level(level: str) -> MemoryResult[MemoryLevel]:
    """Map a level spelling (case-insensitive) to a :data:`MemoryLevel`."""
    resolved = LEVEL_ALIASES.get(level.strip().lower()) if isinstance(level, str) else None
    if resolved is None:
        return MemoryResult.failure(INVALID_CONTENT, f"Invalid memory level: {level}")
    return MemoryResult.success(resolved)


def split_tags(raw: str) -> List[str]:
    """Split a comma-separated tag string, dropping blanks."""
    return [t.strip() for t in raw.split(",") if t.strip()]
