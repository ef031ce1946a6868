"""File locking and atomic writes for the record store and backup files."""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import portalocker


def lock_path_for(path: Path) -> Path:
    """Lock file that guards ``path``."""
    return path.with_suffix(path.suffix + ".lock")


@contextmanager
def file_lock(path: Path, timeout: float = 10.0) -> Generator[None, None, None]:
    """Hold an exclusive lock guarding ``path``.

    Uses a sibling ``.lock`` file so the guarded file itself may be
    replaced or reopened while the lock is held.

    Args:
        path: File to guard
        timeout: Seconds to wait for the lock

    Raises:
        portalocker.LockException: If the lock cannot be acquired
    """
    lock_path = lock_path_for(path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_path.touch(exist_ok=True)

    with portalocker.Lock(lock_path, timeout=timeout):
        yield


def atomic_write_bytes(path: Path, payload: bytes) -> None:
    """Write ``payload`` to ``path`` in a single call, atomically.

    The bytes go to a temporary sibling which is then renamed over the
    target; on any failure the temporary file is removed and the target is
    left untouched.
    """
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(tmp_path, "wb") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path.exists():
            tmp_path.unlink()
        raise
