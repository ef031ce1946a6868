"""Core timelog engine - records, backups, duplicates and tags behind one service."""

from __future__ import annotations

import logging
from datetime import date, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from .backup import (
    delete_backup,
    export_records,
    list_backups,
    read_backup,
    write_backup,
)
from .config import TimelogConfig
from .dedup import Deduplicator
from .errors import (
    FileIOError,
    ImportFailedError,
    InvalidRecordError,
    RecordNotFoundError,
    StoreError,
)
from .locking import file_lock
from .logging_config import PACKAGE_LOGGER, configure_ops_log
from .merger import import_document
from .models import ImportPolicy, ImportResult, Record, RecordKind, Segment, ensure_aware
from .queries import SearchFilter, on_this_day, search
from .segmenter import decode_rich_format, highlight_matches, segment
from .store import SqliteRecordStore
from .tags import records_with_tag, top_tags

logger = logging.getLogger(__name__)


def _as_kind(kind: Union[RecordKind, str, None]) -> Optional[RecordKind]:
    if kind is None or isinstance(kind, RecordKind):
        return kind
    try:
        return RecordKind(kind)
    except ValueError as e:
        valid = [k.value for k in RecordKind]
        raise InvalidRecordError(f"Unknown kind {kind!r}. Valid: {valid}") from e


def _as_policy(policy: Union[ImportPolicy, str]) -> ImportPolicy:
    if isinstance(policy, ImportPolicy):
        return policy
    try:
        return ImportPolicy(policy)
    except ValueError as e:
        raise ValueError(f"Unknown import policy {policy!r}. Valid: merge, overwrite") from e


class TimelogEngine:
    """Core engine owning the record store and the backup, dedup and tag services.

    One engine per data directory; callers pass it to whatever orchestrates
    export, import and cleanup. Store mutations are serialized across
    processes with a lock file beside the database.
    """

    def __init__(self, config: TimelogConfig):
        self.config = config
        self._ensure_directories()
        self._store: Optional[SqliteRecordStore] = None
        self.deduplicator = Deduplicator(
            granularity=config.dedup_granularity,
            tz=config.get_timezone(),
        )
        self._ops_handler: Optional[RotatingFileHandler] = None
        if config.ops_log:
            self._ops_handler = configure_ops_log(config.get_data_path())

    @property
    def store(self) -> SqliteRecordStore:
        """Lazily open and return the record store."""
        if self._store is None:
            self._store = SqliteRecordStore(self.config.get_db_path())
        return self._store

    def _ensure_directories(self) -> None:
        """Create the data directory if it doesn't exist.

        Note: the backups directory is created on first export.
        """
        self.config.get_data_path().mkdir(parents=True, exist_ok=True)

    def _lock(self):
        return file_lock(self.config.get_db_path())

    def close(self) -> None:
        """Close the store and detach the operations log."""
        if self._store is not None:
            self._store.close()
            self._store = None
        if self._ops_handler is not None:
            logging.getLogger(PACKAGE_LOGGER).removeHandler(self._ops_handler)
            self._ops_handler.close()
            self._ops_handler = None

    # ========== Entries ==========

    def add_entry(
        self,
        content: str = "",
        kind: Union[RecordKind, str] = RecordKind.TIMELINE,
        timestamp: Optional[datetime] = None,
        icon_name: Optional[str] = None,
        image_bytes: Optional[bytes] = None,
        rich_format: Optional[str] = None,
        is_highlighted: bool = False,
    ) -> Record:
        """Create and persist a new entry.

        Raises:
            InvalidRecordError: If the entry has neither text nor image, the
                kind is unknown, or the rich format does not match the text
            StoreError: If the store cannot save the entry
        """
        if not content and image_bytes is None:
            raise InvalidRecordError("An entry needs text or an image")

        if rich_format is not None:
            decoded = decode_rich_format(rich_format)
            if decoded is None:
                raise InvalidRecordError("Rich format is not a valid style document")
            if decoded[0] != content:
                raise InvalidRecordError("Rich format text does not match entry content")

        extra = {"icon_name": icon_name} if icon_name else {}
        record = Record.create(
            content=content,
            timestamp=timestamp,
            kind=_as_kind(kind) or RecordKind.TIMELINE,
            image_bytes=image_bytes,
            rich_format=rich_format,
            is_highlighted=is_highlighted,
            **extra,
        )

        with self._lock():
            try:
                self.store.insert(record)
                self.store.save()
            except StoreError:
                self.store.rollback()
                raise

        logger.debug("Added %s entry %s", record.kind.value, record.id)
        return record

    def get_entry(self, record_id: str) -> Record:
        """Get a single entry.

        Raises:
            RecordNotFoundError: If no entry has this id
        """
        record = self.store.get(record_id)
        if record is None:
            raise RecordNotFoundError(f"No entry with id {record_id}")
        return record

    def list_entries(
        self,
        kind: Union[RecordKind, str, None] = None,
        include_highlighted: bool = False,
    ) -> list[Record]:
        """Entries newest first, optionally restricted to one kind.

        With ``include_highlighted``, highlighted entries of other kinds are
        listed too (the inspiration collection shows them).
        """
        wanted = _as_kind(kind)
        records = self.store.list_all()
        if wanted is not None:
            records = [
                r for r in records
                if r.kind == wanted or (include_highlighted and r.is_highlighted)
            ]
        return sorted(records, key=lambda r: ensure_aware(r.timestamp), reverse=True)

    def delete_entry(self, record_id: str) -> None:
        """Delete an entry.

        Raises:
            RecordNotFoundError: If no entry has this id
        """
        with self._lock():
            record = self.get_entry(record_id)
            self.store.delete(record)
            self.store.save()

    def segments_for(self, record_id: str, highlight: Optional[str] = None) -> list[Segment]:
        """Rendered segments of an entry, with optional search highlight."""
        record = self.get_entry(record_id)
        return highlight_matches(segment(record.content, record.rich_format), highlight)

    # ========== Backups ==========

    def export_backup(self) -> Path:
        """Write every entry, newest first, to a new backup file.

        Raises:
            FileIOError: If the backup cannot be written
        """
        doc = export_records(self.list_entries())
        path = write_backup(self.config.get_backups_path(), self.config.app_name, doc)

        if "post_export" in self.config.hooks:
            self.config.hooks["post_export"](path)

        return path

    def import_backup(
        self,
        path: Union[Path, str],
        policy: Union[ImportPolicy, str] = ImportPolicy.MERGE,
    ) -> ImportResult:
        """Import a backup file.

        The file is read and parsed before the store is touched, so an
        unreadable or malformed file leaves the store unchanged.

        Raises:
            FileIOError: If the file cannot be read
            DecodeError: If the file is not a backup document
            ImportFailedError: If the store fails part-way
        """
        policy = _as_policy(policy)
        doc = read_backup(self._resolve_backup_path(path))

        with self._lock():
            try:
                result = import_document(doc, policy, self.store)
            except ImportFailedError:
                # Keep what was inserted before the failure if the store allows it
                try:
                    self.store.save()
                except StoreError:
                    self.store.rollback()
                raise

        if "post_import" in self.config.hooks:
            self.config.hooks["post_import"](result)

        return result

    def list_backups(self) -> list[Path]:
        """Backup files, newest first."""
        return list_backups(self.config.get_backups_path(), self.config.app_name)

    def delete_backup(self, path: Union[Path, str]) -> Path:
        """Delete a backup file (by path or by name in the backups directory).

        Raises:
            FileIOError: If the file is not a backup or cannot be removed
        """
        resolved = self._resolve_backup_path(path)
        if resolved.suffix != ".json" or not resolved.name.startswith(f"{self.config.app_name}_backup_"):
            raise FileIOError(f"Not a backup file: {resolved}")
        delete_backup(resolved)
        return resolved

    def _resolve_backup_path(self, path: Union[Path, str]) -> Path:
        path = Path(path)
        if not path.is_absolute() and not path.exists():
            return self.config.get_backups_path() / path
        return path

    # ========== Duplicates ==========

    def find_duplicates(self) -> list[list[Record]]:
        """Groups of entries considered duplicates of each other."""
        return self.deduplicator.find_duplicates(self.store.list_all())

    def remove_duplicates(self) -> int:
        """Remove duplicates, keeping the first stored entry of each group."""
        with self._lock():
            try:
                return self.deduplicator.remove_duplicates(self.store)
            except StoreError:
                self.store.rollback()
                raise

    # ========== Tags and search ==========

    def top_tags(
        self,
        limit: Optional[int] = None,
        kind: Union[RecordKind, str, None] = None,
    ) -> list[tuple[str, int]]:
        """Most used tags, most frequent first."""
        if limit is None:
            limit = self.config.top_tags_limit
        return top_tags(self.list_entries(kind=kind), limit)

    def entries_with_tag(self, tag: str, kind: Union[RecordKind, str, None] = None) -> list[Record]:
        """Entries carrying ``tag``, newest first."""
        return records_with_tag(self.list_entries(kind=kind), tag)

    def search(
        self,
        text: str = "",
        search_filter: Union[SearchFilter, str] = SearchFilter.ALL,
        kind: Union[RecordKind, str, None] = None,
        now: Optional[datetime] = None,
    ) -> list[Record]:
        """Search entry text, newest first."""
        if not isinstance(search_filter, SearchFilter):
            search_filter = SearchFilter(search_filter)
        return search(self.list_entries(kind=kind), text, search_filter, now=now)

    def on_this_day(self, today: Optional[date] = None, years_back: int = 1) -> list[Record]:
        """Entries written on this calendar day ``years_back`` years ago."""
        tz = self.config.get_timezone()
        if today is None:
            today = datetime.now(tz).date()
        return on_this_day(self.list_entries(), today, years_back=years_back, tz=tz)
