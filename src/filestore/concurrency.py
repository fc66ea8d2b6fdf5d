"""Concurrency primitives for file stores.

``StoreLock`` serializes writers: a ``threading.RLock`` orders threads in
this process and, when a lock path is given, a ``filelock.FileLock`` orders
processes sharing the same store directory. ``atomic_write`` publishes a
file with the write-to-temp-then-rename pattern so readers never observe a
partially written file.

Example:
    >>> lock = StoreLock(Path(".filestore/lock"), timeout=5.0)
    >>> with lock:
    ...     atomic_write(Path(".filestore/HEAD"), b"abc123")
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

import filelock

from filestore.errors import UnknownError

logger = logging.getLogger(__name__)


class StoreLock:
    """Reentrant write lock for one store.

    Args:
        lock_path: Lock file for inter-process locking; None for thread-only.
        timeout: Seconds to wait; None waits forever.
    """

    def __init__(self, lock_path: Path | None = None, timeout: float | None = None) -> None:
        self._lock_path = lock_path
        self._timeout = timeout
        self._thread_lock = threading.RLock()
        self._file_lock: filelock.FileLock | None = None
        if lock_path is not None:
            self._file_lock = filelock.FileLock(
                str(lock_path),
                timeout=-1 if timeout is None else timeout,
            )

    @property
    def lock_path(self) -> Path | None:
        return self._lock_path

    def acquire(self) -> None:
        """Acquire the lock.

        Raises:
            UnknownError: If the timeout expires first.
        """
        wait = -1 if self._timeout is None else self._timeout
        if not self._thread_lock.acquire(timeout=wait):
            logger.warning("Timed out after %ss waiting for store lock", self._timeout)
            raise UnknownError(f"timed out after {self._timeout}s waiting for store lock")
        if self._file_lock is None:
            return
        try:
            self._file_lock.acquire()
        except filelock.Timeout as e:
            self._thread_lock.release()
            logger.warning("Timed out waiting for %s", self._lock_path)
            raise UnknownError(f"timed out waiting for lock {e.lock_file}") from e
        except BaseException:
            self._thread_lock.release()
            raise

    def release(self) -> None:
        try:
            if self._file_lock is not None:
                self._file_lock.release()
        finally:
            self._thread_lock.release()

    def __enter__(self) -> "StoreLock":
        self.acquire()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.release()


def atomic_write(path: Path, data: bytes, sync: bool = True) -> None:
    """Write ``data`` to ``path`` atomically.

    The data goes to a temp file in the same directory which is then
    renamed over the target; on failure the target is left untouched.

    Args:
        path: Target file path.
        data: Content to write.
        sync: Whether to fsync the temp file before the rename.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            if sync:
                f.flush()
                os.fsync(f.fileno())
        os.replace(temp_path, path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise
