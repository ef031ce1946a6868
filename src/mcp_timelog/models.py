"""Data models for log records, backup documents, and text segments."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


DEFAULT_ICON_NAME = "circle.fill"


class RecordKind(Enum):
    """Classification of a log record."""
    TIMELINE = "timeline"
    INSPIRATION = "inspiration"
    MOMENT = "moment"


class SegmentKind(Enum):
    """Type of a text segment."""
    TEXT = "text"
    TAG = "tag"
    SEPARATOR = "separator"


class ImportPolicy(Enum):
    """How an imported backup is applied to the store."""
    MERGE = "merge"
    OVERWRITE = "overwrite"


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def generate_record_id() -> str:
    """Generate a fresh, never-reused record identifier."""
    return str(uuid.uuid4())


def ensure_aware(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def format_timestamp(dt: datetime) -> str:
    """Format datetime as ISO 8601 with timezone."""
    return ensure_aware(dt).isoformat(timespec='milliseconds')


def format_backup_timestamp(dt: datetime) -> str:
    """Format datetime as ISO 8601 UTC with a Z suffix (seconds precision)."""
    return ensure_aware(dt).astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(s: str) -> datetime:
    """Parse ISO 8601 timestamp string.

    Accepts a trailing ``Z``; naive results are taken to be UTC.

    Raises:
        ValueError: If the string is not an ISO 8601 timestamp
    """
    if not isinstance(s, str):
        raise ValueError(f"Timestamp must be a string, got {type(s).__name__}")
    text = s.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return ensure_aware(datetime.fromisoformat(text))


@dataclass
class Record:
    """A single log entry as held by the record store."""
    id: str
    timestamp: datetime
    content: str = ""
    kind: RecordKind = RecordKind.TIMELINE
    icon_name: str = DEFAULT_ICON_NAME
    rich_format: Optional[str] = None     # Neutral style-span document (JSON)
    image_bytes: Optional[bytes] = None
    is_highlighted: bool = False          # Also surfaced in the inspiration collection

    @classmethod
    def create(cls, content: str = "", timestamp: Optional[datetime] = None, **kwargs: Any) -> "Record":
        """Build a record with a freshly generated id."""
        return cls(
            id=generate_record_id(),
            timestamp=ensure_aware(timestamp) if timestamp else utc_now(),
            content=content,
            **kwargs,
        )

    @property
    def has_image(self) -> bool:
        return self.image_bytes is not None

    def to_dict(self) -> dict:
        """Convert record to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "timestamp": format_timestamp(self.timestamp),
            "content": self.content,
            "kind": self.kind.value,
            "icon_name": self.icon_name,
            "rich_format": self.rich_format,
            "is_highlighted": self.is_highlighted,
            "has_image": self.has_image,
            "image_size": len(self.image_bytes) if self.image_bytes is not None else None,
        }


@dataclass
class BackupRecord:
    """Transport-safe projection of a Record inside a backup document.

    Values are kept as found in the file; validation happens at import.
    """
    id: Any = None
    timestamp: Any = None
    content: Any = None
    icon_name: Any = None
    kind: Any = None
    image_base64: Any = None
    is_highlighted: Any = None
    rich_format: Any = None

    @classmethod
    def from_dict(cls, data: Any) -> "BackupRecord":
        if not isinstance(data, dict):
            return cls()
        return cls(
            id=data.get("id"),
            timestamp=data.get("timestamp"),
            content=data.get("content"),
            icon_name=data.get("iconName"),
            kind=data.get("type"),
            image_base64=data.get("imageBase64"),
            is_highlighted=data.get("isHighlighted"),
            rich_format=data.get("richFormat"),
        )

    def to_dict(self) -> dict:
        result = {
            "id": self.id,
            "timestamp": self.timestamp,
            "content": self.content,
            "iconName": self.icon_name,
            "type": self.kind,
            "imageBase64": self.image_base64,
        }
        # Extension keys are written only when they carry information
        if self.is_highlighted:
            result["isHighlighted"] = True
        if self.rich_format is not None:
            result["richFormat"] = self.rich_format
        return result


@dataclass
class BackupDocument:
    """Versioned, portable serialization of a set of records."""
    format_version: str
    exported_at: str
    records: list[BackupRecord] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "version": self.format_version,
            "exportDate": self.exported_at,
            "items": [r.to_dict() for r in self.records],
        }


@dataclass(frozen=True)
class TextStyle:
    """Resolved display style of a run of text."""
    bold: bool = False
    italic: bool = False
    underline: bool = False
    color: Optional[str] = None
    background: Optional[str] = None

    def layered(self, **overrides: Any) -> "TextStyle":
        """Return a copy with the given attributes laid on top."""
        return replace(self, **overrides)

    def to_dict(self) -> dict:
        return {
            "bold": self.bold,
            "italic": self.italic,
            "underline": self.underline,
            "color": self.color,
            "background": self.background,
        }


DEFAULT_STYLE = TextStyle()


@dataclass(frozen=True)
class StyleSpan:
    """A style run over ``content[start:start + length]``."""
    start: int
    length: int
    attributes: TextStyle = DEFAULT_STYLE

    @property
    def end(self) -> int:
        return self.start + self.length


@dataclass(frozen=True)
class Segment:
    """A contiguous run of entry text with its resolved style."""
    text: str
    kind: SegmentKind = SegmentKind.TEXT
    style: TextStyle = DEFAULT_STYLE

    @property
    def is_tag(self) -> bool:
        return self.kind == SegmentKind.TAG

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "kind": self.kind.value,
            "is_tag": self.is_tag,
            "style": self.style.to_dict(),
        }


@dataclass
class ImportResult:
    """Outcome of applying a backup document to the store."""
    policy: ImportPolicy
    inserted_count: int = 0
    skipped_count: int = 0
    image_fallback_count: int = 0   # Records imported without their unusable image
    deleted_count: int = 0          # Records removed up front by an overwrite import

    def to_dict(self) -> dict:
        return {
            "policy": self.policy.value,
            "inserted_count": self.inserted_count,
            "skipped_count": self.skipped_count,
            "image_fallback_count": self.image_fallback_count,
            "deleted_count": self.deleted_count,
        }
