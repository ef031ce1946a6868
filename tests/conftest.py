"""Shared pytest fixtures for mcp-timelog tests."""

import gc
import logging
import tempfile
import weakref
from datetime import datetime, timezone
from pathlib import Path

import pytest

from mcp_timelog.config import TimelogConfig
from mcp_timelog.engine import TimelogEngine
from mcp_timelog.logging_config import PACKAGE_LOGGER
from mcp_timelog.models import Record, RecordKind
from mcp_timelog.store import SqliteRecordStore


# Global tracking of engines via weak references
_engine_refs = []


# Patch TimelogEngine.__init__ at import time to track all instances
_original_init = TimelogEngine.__init__


def _tracking_init(self, *args, **kwargs):
    """Wrapper for TimelogEngine.__init__ that tracks created engines."""
    _original_init(self, *args, **kwargs)
    _engine_refs.append(weakref.ref(self))


TimelogEngine.__init__ = _tracking_init


def cleanup_all_engines():
    """Close all tracked engine instances so database handles are released."""
    global _engine_refs

    gc.collect()
    for ref in _engine_refs:
        eng = ref()
        if eng is not None:
            eng.close()
    _engine_refs = []
    gc.collect()


def make_record(
    content="entry",
    timestamp=datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc),
    **kwargs,
):
    """Build a record with a fresh id."""
    return Record.create(content=content, timestamp=timestamp, **kwargs)


@pytest.fixture
def temp_project():
    """Create a temporary project directory."""
    global _engine_refs
    _engine_refs = [ref for ref in _engine_refs if ref() is not None]

    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)
        # Clean up engines BEFORE the temp directory is deleted
        cleanup_all_engines()


@pytest.fixture
def config(temp_project):
    """Create a test configuration."""
    return TimelogConfig(
        app_name="testlog",
        project_root=temp_project,
    )


@pytest.fixture
def engine(config):
    """Create a test engine with proper cleanup."""
    eng = TimelogEngine(config)
    yield eng
    eng.close()


@pytest.fixture
def store(temp_project):
    """A standalone SQLite record store."""
    st = SqliteRecordStore(temp_project / "store.db")
    yield st
    st.close()


@pytest.fixture
def sample_records():
    """A small mixed set of records, oldest first."""
    return [
        make_record("buy milk #errand", datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)),
        make_record(
            "sunset at the pier #photo",
            datetime(2025, 1, 2, 18, 30, tzinfo=timezone.utc),
            kind=RecordKind.MOMENT,
            image_bytes=b"\x89PNG\r\n\x1a\nfake",
        ),
        make_record(
            "idea: a tiny #app for #notes",
            datetime(2025, 1, 3, 9, 15, tzinfo=timezone.utc),
            kind=RecordKind.INSPIRATION,
            is_highlighted=True,
            icon_name="lightbulb",
        ),
    ]


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers main() or the ops log attached during a test."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    handlers = list(logger.handlers)
    level = logger.level
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
