"""Filesystem-based file store backend.

A plain directory tree holds the latest version of every resource, so the
store can be browsed with ordinary tools. History is kept alongside it in a
reserved metadata directory::

    <base_path>/
        notes/todo.txt            latest contents, kept in sync on commit
        .filestore/
            HEAD                  id of the newest revision (empty before the first)
            lock                  inter-process write lock
            objects/ab/cdef...    content-addressed blobs
            revisions/<id>.json   one record per revision (metadata, parent, tree)

Blobs and revision records are immutable and written atomically before
``HEAD`` is replaced, so readers see either the previous or the new state.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Iterable, Mapping

from filestore.base import Clock, FileStoreConfig
from filestore.concurrency import StoreLock, atomic_write
from filestore.errors import RepositoryExists, UnknownError, map_errors
from filestore.snapshot import Commit, SnapshotFileStore
from filestore.types import RevisionId
from filestore.utils import parent_dirs

logger = logging.getLogger(__name__)

HEAD_FILE = "HEAD"
LOCK_FILE = "lock"
OBJECTS_DIR = "objects"
REVISIONS_DIR = "revisions"


@dataclass
class FileSystemConfig(FileStoreConfig):
    """Configuration for the filesystem store.

    Attributes:
        sync_writes: Whether to fsync files before publishing them.
        mirror_working_tree: Whether to keep latest contents as plain files
            under ``base_path``.
    """

    sync_writes: bool = True
    mirror_working_tree: bool = True


class FileSystemFileStore(SnapshotFileStore[FileSystemConfig]):
    """Versioned store on the local filesystem.

    Example:
        >>> store = FileSystemFileStore(base_path="wiki")
        >>> store.initialize()
        >>> store.save("Front Page.md", Author("Ada", "ada@example.com"), "start", "# Hi")
    """

    def __init__(
        self,
        base_path: str | None = None,
        config: FileSystemConfig | None = None,
        clock: Clock | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the filesystem store handle.

        Args:
            base_path: Root directory of the store.
            config: Store configuration; ``base_path`` overrides its root.
            clock: Source of revision timestamps.
            **kwargs: Configuration fields, used when ``config`` is None.
        """
        if config is None:
            config = FileSystemConfig(
                **{k: v for k, v in kwargs.items() if hasattr(FileSystemConfig, k)}
            )
        if base_path is not None:
            config = replace(config, base_path=str(base_path))
        super().__init__(config, clock)
        self._root = self._config.get_full_path()
        self._meta = self._root / self._config.metadata_dir
        self._lock = StoreLock(self._meta / LOCK_FILE, timeout=self._config.lock_timeout)

    @classmethod
    def _default_config(cls) -> FileSystemConfig:
        """Create default configuration."""
        return FileSystemConfig()

    @property
    def root(self) -> Path:
        return self._root

    @property
    def reserved_names(self) -> tuple[str, ...]:
        return (self._config.metadata_dir,)

    def is_initialized(self) -> bool:
        return (self._meta / HEAD_FILE).is_file()

    def _do_initialize(self) -> None:
        if self._meta.exists():
            raise RepositoryExists(path=str(self._root))
        with map_errors("initialize"):
            if not self._root.exists() and not self._config.create_dirs:
                raise UnknownError(f"store root {self._root} does not exist")
            try:
                self._meta.mkdir(parents=True, exist_ok=False)
            except FileExistsError as e:
                # another process initialized first
                raise RepositoryExists(path=str(self._root)) from e
            (self._meta / OBJECTS_DIR).mkdir()
            (self._meta / REVISIONS_DIR).mkdir()
            atomic_write(self._meta / HEAD_FILE, b"", sync=self._config.sync_writes)

    # -------------------------------------------------------------------------
    # Storage hooks
    # -------------------------------------------------------------------------

    def _head_id(self) -> RevisionId | None:
        with map_errors("read HEAD"):
            value = (self._meta / HEAD_FILE).read_text(encoding="utf-8").strip()
        return value or None

    def _set_head(self, commit_id: RevisionId) -> None:
        with map_errors("update HEAD"):
            atomic_write(
                self._meta / HEAD_FILE,
                commit_id.encode("utf-8"),
                sync=self._config.sync_writes,
            )

    def _revision_path(self, commit_id: RevisionId) -> Path:
        return self._meta / REVISIONS_DIR / f"{commit_id}.json"

    def _blob_path(self, digest: str) -> Path:
        return self._meta / OBJECTS_DIR / digest[:2] / digest[2:]

    def _find_commit(self, commit_id: RevisionId) -> Commit | None:
        if not commit_id or "/" in commit_id or commit_id.startswith("."):
            return None
        path = self._revision_path(commit_id)
        if not path.is_file():
            return None
        with map_errors(f"read revision {commit_id}"):
            data = json.loads(path.read_text(encoding="utf-8"))
            return Commit.from_dict(data)

    def _write_commit(self, commit: Commit) -> None:
        indent = 2 if self._config.pretty_print else None
        content = json.dumps(commit.to_dict(), indent=indent, default=str)
        with map_errors(f"write revision {commit.id}"):
            atomic_write(
                self._revision_path(commit.id),
                content.encode("utf-8"),
                sync=self._config.sync_writes,
            )

    def _commit_ids(self) -> Iterable[RevisionId]:
        with map_errors("list revisions"):
            return [p.stem for p in (self._meta / REVISIONS_DIR).glob("*.json")]

    def _read_blob(self, digest: str) -> bytes:
        with map_errors(f"read object {digest}"):
            return self._blob_path(digest).read_bytes()

    def _write_blob(self, digest: str, data: bytes) -> None:
        path = self._blob_path(digest)
        if path.exists():
            return
        with map_errors(f"write object {digest}"):
            atomic_write(path, data, sync=self._config.sync_writes)

    def _write_lock(self) -> StoreLock:
        return self._lock

    def _publish(self, commit: Commit, previous: Mapping[str, str]) -> None:
        """Bring the working tree in line with ``commit``."""
        if not self._config.mirror_working_tree:
            return
        with map_errors(f"update working tree for {commit.id}"):
            for name in previous:
                if name not in commit.tree:
                    self._remove_working_file(name)
            for name, digest in commit.tree.items():
                if previous.get(name) != digest:
                    atomic_write(self._root / name, self._read_blob(digest), sync=False)

    def _remove_working_file(self, name: str) -> None:
        (self._root / name).unlink(missing_ok=True)
        for parent in reversed(parent_dirs(name)):
            directory = self._root / parent
            try:
                directory.rmdir()
            except OSError:
                # not empty
                break
            logger.debug("Removed empty directory %s", directory)

    def __repr__(self) -> str:
        return f"FileSystemFileStore(root={os.fspath(self._root)!r})"
