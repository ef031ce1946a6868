"""Exception hierarchy for timelog operations."""

from __future__ import annotations


class TimelogError(Exception):
    """Base exception for timelog operations."""
    pass


class DecodeError(TimelogError):
    """Raised when a backup document is not a valid document at all."""
    pass


class StoreError(TimelogError):
    """Raised when the record store fails to apply or persist changes."""
    pass


class ImportFailedError(StoreError):
    """Raised when the store fails part-way through an import.

    The store is left in the partially-imported state; ``inserted_count``
    reports how many records had been inserted before the failure.
    """

    def __init__(self, message: str, inserted_count: int = 0):
        super().__init__(message)
        self.inserted_count = inserted_count


class FileIOError(TimelogError):
    """Raised when reading, writing, listing or deleting a backup file fails."""
    pass


class InvalidRecordError(TimelogError):
    """Raised when a new entry violates a record invariant."""
    pass


class RecordNotFoundError(TimelogError):
    """Raised when a record id is not in the store."""
    pass


class ConfigError(TimelogError):
    """Raised for unsupported or invalid configuration."""
    pass
