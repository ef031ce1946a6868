"""Content segmentation for entry text.

Every surface that renders, filters or aggregates entry text goes through
:func:`segment`. Text is cut into maximal non-whitespace runs ("words") and
single whitespace characters ("separators"); joining the ``text`` of the
returned segments always reproduces the input exactly.

A word is a tag when it starts with ``#`` and is longer than the marker
alone. Tags are drawn in the accent color; everything else keeps the default
style unless a rich-format document supplies recorded style runs.

Rich format is a small JSON document::

    {"text": "hello #world",
     "spans": [{"start": 0, "length": 5, "attributes": {"bold": true}}]}

Offsets count code points of ``text``, which must equal the entry content.
Anything unreadable, or a document whose text has drifted from the content,
is ignored and the plain path is used instead.
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterable, Optional

from .models import DEFAULT_STYLE, Segment, SegmentKind, StyleSpan, TextStyle

TAG_MARKER = "#"
TAG_ACCENT_COLOR = "#007AFF"
HIGHLIGHT_BACKGROUND = "#FFF3B0"

_TOKEN_RE = re.compile(r"(?P<sep>\s)|(?P<word>\S+)")
_STYLE_FLAGS = ("bold", "italic", "underline")
_STYLE_COLORS = ("color", "background")


def is_tag_token(token: str) -> bool:
    """True for ``#`` followed by at least one more character."""
    return token.startswith(TAG_MARKER) and len(token) > 1


# ========== Rich format ==========

def _style_to_dict(style: TextStyle) -> dict[str, Any]:
    """Only non-default attributes are written."""
    data: dict[str, Any] = {}
    for name in _STYLE_FLAGS:
        if getattr(style, name):
            data[name] = True
    for name in _STYLE_COLORS:
        value = getattr(style, name)
        if value is not None:
            data[name] = value
    return data


def _style_from_dict(data: Any) -> Optional[TextStyle]:
    if not isinstance(data, dict):
        return None
    values: dict[str, Any] = {}
    for name in _STYLE_FLAGS:
        flag = data.get(name, False)
        if not isinstance(flag, bool):
            return None
        values[name] = flag
    for name in _STYLE_COLORS:
        color = data.get(name)
        if color is not None and not isinstance(color, str):
            return None
        values[name] = color
    return TextStyle(**values)


def _span_from_dict(data: Any) -> Optional[StyleSpan]:
    if not isinstance(data, dict):
        return None
    start = data.get("start")
    length = data.get("length")
    for value in (start, length):
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            return None
    style = _style_from_dict(data.get("attributes", {}))
    if style is None:
        return None
    return StyleSpan(start=start, length=length, attributes=style)


def encode_rich_format(text: str, spans: Iterable[StyleSpan]) -> str:
    """Serialize style spans for ``text`` as a neutral rich-format document."""
    return json.dumps(
        {
            "text": text,
            "spans": [
                {"start": s.start, "length": s.length, "attributes": _style_to_dict(s.attributes)}
                for s in spans
            ],
        },
        sort_keys=True,
        ensure_ascii=False,
    )


def decode_rich_format(blob: Optional[str]) -> Optional[tuple[str, list[StyleSpan]]]:
    """Decode a rich-format document.

    Returns:
        ``(text, spans)``, or None when the blob is absent or malformed
    """
    if blob is None:
        return None
    try:
        data = json.loads(blob)
    except (TypeError, ValueError):
        return None
    if not isinstance(data, dict):
        return None

    text = data.get("text")
    raw_spans = data.get("spans", [])
    if not isinstance(text, str) or not isinstance(raw_spans, list):
        return None

    spans = []
    for raw in raw_spans:
        span = _span_from_dict(raw)
        if span is None:
            return None
        spans.append(span)
    return text, spans


def _resolve_styles(content: str, rich_format: Optional[str]) -> Optional[list[TextStyle]]:
    """Per-character recorded styles, or None for the plain path."""
    decoded = decode_rich_format(rich_format)
    if decoded is None:
        return None
    text, spans = decoded
    if text != content:
        return None

    styles = [DEFAULT_STYLE] * len(content)
    # Later spans win where spans overlap
    for span in spans:
        for i in range(span.start, min(span.end, len(content))):
            styles[i] = span.attributes
    return styles


# ========== Segmentation ==========

def _split_runs(word: str, offset: int, styles: list[TextStyle]) -> list[Segment]:
    """Cut a plain word wherever the recorded style changes."""
    pieces = []
    run_start = 0
    for i in range(1, len(word) + 1):
        if i == len(word) or styles[offset + i] != styles[offset + run_start]:
            pieces.append(Segment(
                text=word[run_start:i],
                kind=SegmentKind.TEXT,
                style=styles[offset + run_start],
            ))
            run_start = i
    return pieces


def segment(content: str, rich_format: Optional[str] = None) -> list[Segment]:
    """Split entry text into ordered tag, text and separator segments.

    Args:
        content: Entry text
        rich_format: Optional rich-format document aligned to ``content``

    Returns:
        Segments whose texts concatenate back to ``content``
    """
    styles = _resolve_styles(content, rich_format)
    segments: list[Segment] = []

    for match in _TOKEN_RE.finditer(content):
        token = match.group()
        start = match.start()
        recorded = styles[start] if styles is not None else DEFAULT_STYLE

        if match.group("sep") is not None:
            segments.append(Segment(text=token, kind=SegmentKind.SEPARATOR, style=recorded))
        elif is_tag_token(token):
            # Tags stay whole; the accent color goes on top of the recorded run
            segments.append(Segment(
                text=token,
                kind=SegmentKind.TAG,
                style=recorded.layered(color=TAG_ACCENT_COLOR),
            ))
        elif styles is None:
            segments.append(Segment(text=token, kind=SegmentKind.TEXT))
        else:
            segments.extend(_split_runs(token, start, styles))

    return segments


# ========== Presentation helpers ==========

def split_tags_and_text(content: str) -> tuple[list[str], str]:
    """Separate an entry into its tag row and its plain text.

    Tags are listed once each in first-seen order; the remaining words are
    joined with single spaces.
    """
    tags: list[str] = []
    words: list[str] = []
    for seg in segment(content):
        if seg.is_tag:
            if seg.text not in tags:
                tags.append(seg.text)
        elif seg.kind == SegmentKind.TEXT:
            words.append(seg.text)
    return tags, " ".join(words)


def strip_tags(content: str) -> str:
    """Entry text with tag tokens removed and outer whitespace trimmed."""
    return "".join(seg.text for seg in segment(content) if not seg.is_tag).strip()


def highlight_matches(segments: Iterable[Segment], query: Optional[str]) -> list[Segment]:
    """Mark segments containing ``query`` (case-insensitive) as highlighted."""
    if not query or not query.strip():
        return list(segments)
    needle = query.strip().casefold()
    result = []
    for seg in segments:
        if seg.kind != SegmentKind.SEPARATOR and needle in seg.text.casefold():
            seg = Segment(
                text=seg.text,
                kind=seg.kind,
                style=seg.style.layered(bold=True, background=HIGHLIGHT_BACKGROUND),
            )
        result.append(seg)
    return result
