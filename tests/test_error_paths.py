"""Tests for error types, locking, atomic writes and logging setup."""

import logging
import sys

import pytest

from mcp_timelog.errors import (
    ConfigError,
    DecodeError,
    FileIOError,
    ImportFailedError,
    InvalidRecordError,
    RecordNotFoundError,
    StoreError,
    TimelogError,
)
from mcp_timelog.locking import atomic_write_bytes, file_lock, lock_path_for
from mcp_timelog.logging_config import PACKAGE_LOGGER, configure_logging, configure_ops_log


class TestErrorHierarchy:
    """All errors share one base."""

    @pytest.mark.parametrize("error_cls", [
        ConfigError, DecodeError, FileIOError, ImportFailedError,
        InvalidRecordError, RecordNotFoundError, StoreError,
    ])
    def test_subclasses_base(self, error_cls):
        assert issubclass(error_cls, TimelogError)

    def test_import_failed_is_store_error(self):
        error = ImportFailedError("boom", inserted_count=4)
        assert isinstance(error, StoreError)
        assert error.inserted_count == 4
        assert str(error) == "boom"

    def test_does_not_shadow_builtin(self):
        assert not issubclass(ImportFailedError, ImportError)


class TestLocking:
    """Tests for file_lock."""

    def test_lock_path(self, temp_project):
        assert lock_path_for(temp_project / "timelog.db") == temp_project / "timelog.db.lock"

    def test_lock_creates_lock_file(self, temp_project):
        target = temp_project / "nested" / "timelog.db"
        with file_lock(target):
            assert lock_path_for(target).exists()

    def test_lock_released_on_exit(self, temp_project):
        target = temp_project / "timelog.db"
        with file_lock(target):
            pass
        with file_lock(target, timeout=0.5):
            pass


class TestAtomicWrite:
    """Tests for atomic_write_bytes."""

    def test_writes_payload(self, temp_project):
        target = temp_project / "out" / "backup.json"
        atomic_write_bytes(target, b"{}")
        assert target.read_bytes() == b"{}"
        assert not (temp_project / "out" / "backup.json.tmp").exists()

    def test_replaces_existing(self, temp_project):
        target = temp_project / "backup.json"
        target.write_bytes(b"old")
        atomic_write_bytes(target, b"new")
        assert target.read_bytes() == b"new"

    def test_failure_keeps_target_and_removes_tmp(self, temp_project, monkeypatch):
        target = temp_project / "backup.json"
        target.write_bytes(b"old")

        def fail_replace(src, dst):
            raise OSError("rename failed")

        monkeypatch.setattr("mcp_timelog.locking.os.replace", fail_replace)
        with pytest.raises(OSError):
            atomic_write_bytes(target, b"new")

        assert target.read_bytes() == b"old"
        assert not (temp_project / "backup.json.tmp").exists()


class TestLoggingConfig:
    """Tests for logging setup."""

    def stderr_handlers(self, logger):
        return [
            h for h in logger.handlers
            if type(h) is logging.StreamHandler and h.stream is sys.stderr
        ]

    def test_single_stderr_handler(self):
        logger = configure_logging("INFO")
        configure_logging("DEBUG")
        assert logger.name == PACKAGE_LOGGER
        handlers = self.stderr_handlers(logger)
        assert len(handlers) == 1
        assert handlers[0].level == logging.DEBUG

    def test_unknown_level_defaults_to_warning(self):
        logger = configure_logging("chatty")
        assert self.stderr_handlers(logger)[0].level == logging.WARNING

    def test_ops_log_receives_info(self, temp_project):
        configure_logging("ERROR")
        handler = configure_ops_log(temp_project)

        logging.getLogger("mcp_timelog.backup").info("written somewhere")
        handler.flush()

        log_text = (temp_project / "timelog-ops.log").read_text(encoding="utf-8")
        assert "written somewhere" in log_text
