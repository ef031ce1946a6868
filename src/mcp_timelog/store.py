"""Record store backed by SQLite.

Inserts and deletes are pending until :meth:`SqliteRecordStore.save`
commits them. Records are listed in insertion order.

Store location: <data dir>/timelog.db
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Optional, Protocol, Sequence, runtime_checkable

from .errors import StoreError
from .models import Record, RecordKind, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)


@runtime_checkable
class RecordStore(Protocol):
    """The store operations the backup and dedup engines rely on."""

    def list_all(self) -> Sequence[Record]:
        ...

    def insert(self, record: Record) -> None:
        ...

    def delete(self, record: Record) -> None:
        ...

    def save(self) -> None:
        ...


class SqliteRecordStore:
    """SQLite-backed record store."""

    SCHEMA_VERSION = 1

    def __init__(self, db_path: Path):
        """Open (and if needed create) the store.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self._connection: Optional[sqlite3.Connection] = None
        self._ensure_schema()

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._connection is None:
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                self._connection = sqlite3.connect(str(self.db_path))
            except (OSError, sqlite3.Error) as e:
                raise StoreError(f"Cannot open record store {self.db_path}: {e}") from e
            self._connection.row_factory = sqlite3.Row
        return self._connection

    def _ensure_schema(self) -> None:
        """Create the database schema if it doesn't exist."""
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name='schema_version'"
            )
            if cursor.fetchone() is None:
                self._init_schema(conn)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot initialise record store: {e}") from e

    def _init_schema(self, conn: sqlite3.Connection) -> None:
        """Initialize the database schema."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );
            INSERT INTO schema_version (version) VALUES (1);

            CREATE TABLE IF NOT EXISTS records (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,  -- insertion order
                id TEXT NOT NULL UNIQUE,
                timestamp TEXT NOT NULL,                -- ISO 8601
                content TEXT NOT NULL,
                kind TEXT NOT NULL,                     -- timeline, inspiration, moment
                icon_name TEXT NOT NULL,
                rich_format TEXT,                       -- neutral style-span JSON
                image BLOB,
                is_highlighted INTEGER NOT NULL DEFAULT 0
            );

            CREATE INDEX IF NOT EXISTS idx_timestamp ON records(timestamp);
            CREATE INDEX IF NOT EXISTS idx_kind ON records(kind);
        """)
        conn.commit()

    def close(self) -> None:
        """Close the database connection, discarding unsaved changes."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    # ========== Consumed interface ==========

    def list_all(self) -> list[Record]:
        """All records, in insertion order (pending changes included)."""
        conn = self._get_connection()
        try:
            rows = conn.execute("SELECT * FROM records ORDER BY seq").fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Cannot list records: {e}") from e
        return [self._row_to_record(row) for row in rows]

    def insert(self, record: Record) -> None:
        """Stage a new record.

        Raises:
            StoreError: If the id is already present or the write fails
        """
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT INTO records (
                    id, timestamp, content, kind, icon_name,
                    rich_format, image, is_highlighted
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    format_timestamp(record.timestamp),
                    record.content,
                    record.kind.value,
                    record.icon_name,
                    record.rich_format,
                    record.image_bytes,
                    1 if record.is_highlighted else 0,
                ),
            )
        except sqlite3.IntegrityError as e:
            raise StoreError(f"Record id already in store: {record.id}") from e
        except sqlite3.Error as e:
            raise StoreError(f"Cannot insert record {record.id}: {e}") from e

    def delete(self, record: Record) -> None:
        """Stage removal of a record (no-op if it is not present)."""
        conn = self._get_connection()
        try:
            conn.execute("DELETE FROM records WHERE id = ?", (record.id,))
        except sqlite3.Error as e:
            raise StoreError(f"Cannot delete record {record.id}: {e}") from e

    def save(self) -> None:
        """Persist pending changes.

        Raises:
            StoreError: If the commit fails
        """
        conn = self._get_connection()
        try:
            conn.commit()
        except sqlite3.Error as e:
            raise StoreError(f"Cannot save record store: {e}") from e

    # ========== Helpers ==========

    def rollback(self) -> None:
        """Discard pending changes."""
        if self._connection is not None:
            self._connection.rollback()

    def get(self, record_id: str) -> Optional[Record]:
        """Get a single record by id, or None."""
        conn = self._get_connection()
        try:
            row = conn.execute("SELECT * FROM records WHERE id = ?", (record_id,)).fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Cannot read record {record_id}: {e}") from e
        if row is None:
            return None
        return self._row_to_record(row)

    def count(self) -> int:
        conn = self._get_connection()
        try:
            return conn.execute("SELECT COUNT(*) FROM records").fetchone()[0]
        except sqlite3.Error as e:
            raise StoreError(f"Cannot count records: {e}") from e

    def _row_to_record(self, row: sqlite3.Row) -> Record:
        """Convert a database row to a Record."""
        try:
            kind = RecordKind(row["kind"])
        except ValueError:
            logger.warning("Record %s has unknown kind %r, reading as timeline", row["id"], row["kind"])
            kind = RecordKind.TIMELINE
        image = row["image"]
        return Record(
            id=row["id"],
            timestamp=parse_timestamp(row["timestamp"]),
            content=row["content"],
            kind=kind,
            icon_name=row["icon_name"],
            rich_format=row["rich_format"],
            image_bytes=bytes(image) if image is not None else None,
            is_highlighted=bool(row["is_highlighted"]),
        )
