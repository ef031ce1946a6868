"""Apply a parsed backup document to the record store."""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import timezone
from typing import Optional

from .errors import ImportFailedError, StoreError
from .models import (
    DEFAULT_ICON_NAME,
    BackupDocument,
    BackupRecord,
    ImportPolicy,
    ImportResult,
    Record,
    RecordKind,
    generate_record_id,
    parse_timestamp,
)
from .segmenter import decode_rich_format
from .store import RecordStore

logger = logging.getLogger(__name__)


def _decode_image(item: BackupRecord) -> tuple[Optional[bytes], bool]:
    """Return ``(image_bytes, fell_back)`` for an item's image payload."""
    if item.image_base64 is None:
        return None, False
    if not isinstance(item.image_base64, str):
        return None, True
    try:
        return base64.b64decode(item.image_base64, validate=True), False
    except (binascii.Error, ValueError):
        return None, True


def _decode_kind(item: BackupRecord) -> RecordKind:
    try:
        return RecordKind(item.kind)
    except ValueError:
        logger.warning("Unknown record type %r, importing as timeline", item.kind)
        return RecordKind.TIMELINE


def _rich_format_for(item: BackupRecord, content: str) -> Optional[str]:
    """Keep an imported rich format only if it matches the content."""
    blob = item.rich_format
    if not isinstance(blob, str):
        return None
    decoded = decode_rich_format(blob)
    if decoded is None or decoded[0] != content:
        logger.debug("Dropping unusable rich format on imported record")
        return None
    return blob


def build_record(item: BackupRecord) -> tuple[Optional[Record], bool]:
    """Turn one backup item into a new record with a fresh id.

    Returns:
        ``(record, image_fell_back)``; record is None when the item must be
        skipped (unparsable or out-of-range timestamp, non-text content)
    """
    try:
        timestamp = parse_timestamp(item.timestamp).astimezone(timezone.utc)
    except (ValueError, OverflowError):
        logger.warning("Skipping record with invalid timestamp: %r", item.timestamp)
        return None, False

    if item.content is None:
        content = ""
    elif isinstance(item.content, str):
        content = item.content
    else:
        logger.warning("Skipping record with non-text content (id %r)", item.id)
        return None, False

    image_bytes, fell_back = _decode_image(item)
    if fell_back:
        logger.warning("Image payload unusable, importing record without image (id %r)", item.id)

    icon_name = item.icon_name if isinstance(item.icon_name, str) else DEFAULT_ICON_NAME
    record = Record(
        id=generate_record_id(),
        timestamp=timestamp,
        content=content,
        kind=_decode_kind(item),
        icon_name=icon_name,
        rich_format=_rich_format_for(item, content),
        image_bytes=image_bytes,
        is_highlighted=item.is_highlighted is True,
    )
    return record, fell_back


def import_document(doc: BackupDocument, policy: ImportPolicy, store: RecordStore) -> ImportResult:
    """Insert every usable record of ``doc`` into ``store``.

    ``OVERWRITE`` deletes all existing records first; ``MERGE`` never
    deletes. Each imported record gets a freshly generated id, so importing
    the same file twice adds two copies. Changes are saved once at the end.

    Not atomic: if the store fails part-way, the records inserted so far
    stay applied and the failure reports how many there were.

    Raises:
        ImportFailedError: If the store fails while deleting, inserting or saving
    """
    result = ImportResult(policy=policy)
    logger.info(
        "Importing backup (version %s, exported %s): %d items, policy %s",
        doc.format_version, doc.exported_at or "?", len(doc.records), policy.value,
    )

    try:
        if policy == ImportPolicy.OVERWRITE:
            existing = store.list_all()
            for record in existing:
                store.delete(record)
            result.deleted_count = len(existing)
            logger.info("Overwrite import: removed %d existing records", len(existing))

        for item in doc.records:
            record, fell_back = build_record(item)
            if record is None:
                result.skipped_count += 1
                continue
            if fell_back:
                result.image_fallback_count += 1
            store.insert(record)
            result.inserted_count += 1

        store.save()
    except StoreError as e:
        raise ImportFailedError(
            f"Import failed after {result.inserted_count} records: {e}",
            inserted_count=result.inserted_count,
        ) from e

    logger.info(
        "Import finished: %d inserted, %d skipped, %d without image",
        result.inserted_count, result.skipped_count, result.image_fallback_count,
    )
    return result
