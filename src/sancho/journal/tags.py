"""Hashtag extraction and tag validation.

A tag is 1-32 characters, starts with a letter, and continues with
letters, digits, hyphens or underscores. Tags are stored lowercase and
always kept sorted.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable
from typing import Any

from sancho.core.exceptions import TagValidationError

MAX_TAG_LENGTH = 32

TAG_PATTERN = re.compile(r"#([A-Za-z][A-Za-z0-9_-]*)")
_VALID_TAG = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")
_INPUT_SEPARATORS = re.compile(r"[,\s]+")


def normalize_tag(tag: str) -> str:
    return tag.strip().lower()


def is_valid_tag(tag: str) -> bool:
    if not tag or len(tag) > MAX_TAG_LENGTH:
        return False
    return bool(_VALID_TAG.match(tag))


def validate_tag(tag: str) -> str:
    """Normalize *tag* or raise TagValidationError."""
    normalized = normalize_tag(tag.removeprefix("#")) if isinstance(tag, str) else ""
    if not is_valid_tag(normalized):
        raise TagValidationError(
            f"Invalid tag {tag!r}: use 1-{MAX_TAG_LENGTH} letters, digits, '-' or '_', starting with a letter"
        )
    return normalized


def extract_tags(content: str) -> list[str]:
    """All ``#tags`` in *content*, lowercased, deduplicated and sorted."""
    if not content:
        return []
    return sorted({match.group(1).lower() for match in TAG_PATTERN.finditer(content)})


def merge_tags(manual: Iterable[str], extracted: Iterable[str]) -> list[str]:
    """Union of manual and extracted tags; invalid names are dropped.

    Idempotent: ``merge_tags(merge_tags(a, b), b) == merge_tags(a, b)``.
    """
    merged = set()
    for tag in [*manual, *extracted]:
        normalized = normalize_tag(tag)
        if is_valid_tag(normalized):
            merged.add(normalized)
    return sorted(merged)


def parse_tag_input(text: str) -> list[str]:
    """Parse free-text tag entry (comma or whitespace separated)."""
    if not text:
        return []
    tags: set[str] = set()
    for part in _INPUT_SEPARATORS.split(text):
        normalized = normalize_tag(part.removeprefix("#"))
        if normalized and is_valid_tag(normalized):
            tags.add(normalized)
    return sorted(tags)


# ── Collection helpers ─────────────────────────────────────────────


def _tags_of(doc: Any) -> Iterable[str]:
    return getattr(doc, "tags", None) or ()


def all_tags(documents: Iterable[Any]) -> list[str]:
    """Every tag used across *documents*, sorted."""
    return sorted({normalize_tag(tag) for doc in documents for tag in _tags_of(doc)})


def tag_counts(documents: Iterable[Any]) -> dict[str, int]:
    """Number of documents carrying each tag."""
    counts: Counter[str] = Counter()
    for doc in documents:
        counts.update({normalize_tag(tag) for tag in _tags_of(doc)})
    return dict(counts)


def filter_by_tag(documents: Iterable[Any], tag: str) -> list[Any]:
    wanted = normalize_tag(tag.removeprefix("#"))
    return [doc for doc in documents if any(normalize_tag(t) == wanted for t in _tags_of(doc))]


def untagged(documents: Iterable[Any]) -> list[Any]:
    return [doc for doc in documents if not _tags_of(doc)]


def highlight_tags(content: str, template: str = "[#{tag}]") -> str:
    """Wrap each ``#tag`` in *content* using *template* (``{tag}`` placeholder)."""
    if not content:
        return ""
    return TAG_PATTERN.sub(lambda m: template.format(tag=m.group(1)), content)
