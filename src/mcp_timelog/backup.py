"""Backup interchange: encode records to a portable JSON document and back.

Document layout (keys sorted, two-space indent, UTF-8)::

    {
      "exportDate": "2026-01-04T08:00:00Z",
      "items": [
        {"content": "...", "iconName": "circle.fill", "id": "...",
         "imageBase64": null, "timestamp": "2026-01-04T07:59:00Z",
         "type": "timeline"}
      ],
      "version": "1.0"
    }

Items may also carry ``isHighlighted`` and ``richFormat``; unknown keys
(for example Live Photo payloads written by other clients) are ignored.
"""

from __future__ import annotations

import base64
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional, Union

from .errors import DecodeError, FileIOError
from .locking import atomic_write_bytes
from .models import (
    BackupDocument,
    BackupRecord,
    Record,
    format_backup_timestamp,
    utc_now,
)

logger = logging.getLogger(__name__)

FORMAT_VERSION = "1.0"
BACKUP_SUFFIX = ".json"
FILENAME_DATE_FORMAT = "%Y-%m-%d_%H%M%S"


# ========== Codec ==========

def to_backup_record(record: Record) -> BackupRecord:
    """Project a record onto its transport-safe form."""
    image_base64 = None
    if record.image_bytes is not None:
        image_base64 = base64.b64encode(record.image_bytes).decode("ascii")

    return BackupRecord(
        id=str(record.id),
        timestamp=format_backup_timestamp(record.timestamp),
        content=record.content,
        icon_name=record.icon_name,
        kind=record.kind.value,
        image_base64=image_base64,
        is_highlighted=record.is_highlighted,
        rich_format=record.rich_format,
    )


def export_records(records: Iterable[Record], exported_at: Optional[datetime] = None) -> BackupDocument:
    """Build a backup document from ``records``, keeping their order."""
    return BackupDocument(
        format_version=FORMAT_VERSION,
        exported_at=format_backup_timestamp(exported_at or utc_now()),
        records=[to_backup_record(r) for r in records],
    )


def encode_document(doc: BackupDocument) -> bytes:
    """Serialize a backup document to its file bytes."""
    text = json.dumps(doc.to_dict(), sort_keys=True, indent=2, ensure_ascii=False)
    return text.encode("utf-8")


def parse_document(data: Union[bytes, str]) -> BackupDocument:
    """Parse backup file contents.

    Individual items are never rejected here; a partially corrupt file
    still yields every item so the importer can keep the usable ones.

    Raises:
        DecodeError: If the payload is not a backup document at all
    """
    try:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        payload = json.loads(data)
    except (UnicodeDecodeError, ValueError, RecursionError) as e:
        raise DecodeError(f"Backup is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise DecodeError("Backup document must be a JSON object")

    version = payload.get("version")
    if not isinstance(version, str):
        raise DecodeError("Backup document has no format version")

    items = payload.get("items", [])
    if not isinstance(items, list):
        raise DecodeError("Backup document 'items' must be a list")

    exported_at = payload.get("exportDate")
    return BackupDocument(
        format_version=version,
        exported_at=exported_at if isinstance(exported_at, str) else "",
        records=[BackupRecord.from_dict(item) for item in items],
    )


# ========== Backup files ==========

def backup_prefix(app_name: str) -> str:
    return f"{app_name}_backup_"


def backup_filename(app_name: str, now: Optional[datetime] = None) -> str:
    """File name for a backup taken at ``now`` (local time)."""
    stamp = (now or datetime.now().astimezone()).strftime(FILENAME_DATE_FORMAT)
    return f"{backup_prefix(app_name)}{stamp}{BACKUP_SUFFIX}"


def write_backup(
    directory: Path,
    app_name: str,
    doc: BackupDocument,
    now: Optional[datetime] = None,
) -> Path:
    """Write ``doc`` into ``directory`` and return the new file's path.

    The whole payload is encoded in memory first and written with one
    atomic call, so a failure never leaves a half-written backup behind.

    Raises:
        FileIOError: If the file cannot be written
    """
    payload = encode_document(doc)
    name = backup_filename(app_name, now)
    path = directory / name
    counter = 2
    while path.exists():
        # Two exports within the same second
        path = directory / f"{name[:-len(BACKUP_SUFFIX)]}_{counter}{BACKUP_SUFFIX}"
        counter += 1

    try:
        atomic_write_bytes(path, payload)
    except OSError as e:
        raise FileIOError(f"Cannot write backup {path}: {e}") from e

    logger.info("Backup written: %s (%d records)", path, len(doc.records))
    return path


def read_backup(path: Path) -> BackupDocument:
    """Read and parse a backup file.

    Raises:
        FileIOError: If the file cannot be read
        DecodeError: If the contents are not a backup document
    """
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise FileIOError(f"Cannot read backup {path}: {e}") from e
    return parse_document(data)


def _creation_time(path: Path) -> float:
    stat = path.stat()
    # Birth time where the platform records it
    return getattr(stat, "st_birthtime", stat.st_mtime)


def list_backups(directory: Path, app_name: str) -> list[Path]:
    """Backup files in ``directory``, newest first.

    Raises:
        FileIOError: If the directory cannot be listed
    """
    if not directory.exists():
        return []
    prefix = backup_prefix(app_name)
    try:
        files = [
            p for p in directory.iterdir()
            if p.is_file() and p.name.startswith(prefix) and p.suffix == BACKUP_SUFFIX
        ]
        return sorted(files, key=lambda p: (_creation_time(p), p.name), reverse=True)
    except OSError as e:
        raise FileIOError(f"Cannot list backups in {directory}: {e}") from e


def delete_backup(path: Path) -> None:
    """Delete a backup file. There is no undo.

    Raises:
        FileIOError: If the file cannot be removed
    """
    try:
        path.unlink()
    except OSError as e:
        raise FileIOError(f"Cannot delete backup {path}: {e}") from e
    logger.info("Backup deleted: %s", path.name)
