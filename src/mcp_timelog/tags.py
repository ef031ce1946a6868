"""Tag extraction and aggregation over record content.

The index is a read-only projection recomputed from the records on every
call; nothing here is cached across store mutations.
"""

from __future__ import annotations

from typing import Iterable

from .models import Record
from .segmenter import TAG_MARKER, segment


def iter_tags(content: str) -> Iterable[str]:
    """Yield every tag occurrence in ``content`` in text order."""
    # Only the textual token matters here, so rich format is not consulted
    for seg in segment(content):
        if seg.is_tag:
            yield seg.text


def extract_tags(content: str) -> set[str]:
    """Return the set of tags appearing in ``content``."""
    return set(iter_tags(content))


def normalize_tag(tag: str) -> str:
    """Accept a tag with or without its leading marker."""
    tag = tag.strip()
    if not tag.startswith(TAG_MARKER):
        tag = TAG_MARKER + tag
    return tag


def top_tags(records: Iterable[Record], limit: int) -> list[tuple[str, int]]:
    """Most frequent tags across ``records``.

    Every occurrence counts. Sorted by count descending; ties keep the
    order in which the tags were first seen.
    """
    if limit <= 0:
        return []
    counts: dict[str, int] = {}
    for record in records:
        for tag in iter_tags(record.content):
            counts[tag] = counts.get(tag, 0) + 1
    # Stable sort: ties stay in first-seen order
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return ranked[:limit]


def records_with_tag(records: Iterable[Record], tag: str) -> list[Record]:
    """Records whose content carries ``tag`` as a tag token."""
    wanted = normalize_tag(tag)
    return [r for r in records if wanted in extract_tags(r.content)]
