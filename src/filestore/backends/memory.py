"""In-memory file store backend.

This module provides a store implementation that keeps all history in
process memory. Useful for testing and for callers that want versioning
semantics without persistence. Data is lost when the store is dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from filestore.base import Clock, FileStoreConfig
from filestore.concurrency import StoreLock
from filestore.errors import RepositoryExists, UnknownError
from filestore.snapshot import Commit, SnapshotFileStore
from filestore.types import RevisionId


@dataclass
class MemoryConfig(FileStoreConfig):
    """Configuration for the memory store.

    Attributes:
        max_blob_bytes: Reject single contents larger than this (0 for unlimited).
    """

    max_blob_bytes: int = 0


class MemoryFileStore(SnapshotFileStore[MemoryConfig]):
    """Versioned store kept entirely in memory.

    Example:
        >>> store = MemoryFileStore()
        >>> store.initialize()
        >>> store.save("a.txt", Author("Ada", "ada@example.com"), "add a", b"one")
    """

    def __init__(
        self,
        config: MemoryConfig | None = None,
        clock: Clock | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the memory store.

        Args:
            config: Store configuration.
            clock: Source of revision timestamps.
            **kwargs: Configuration fields, used when ``config`` is None.
        """
        if config is None:
            config = MemoryConfig(
                **{k: v for k, v in kwargs.items() if hasattr(MemoryConfig, k)}
            )
        super().__init__(config, clock)
        self._initialized = False
        self._commits: dict[RevisionId, Commit] = {}
        self._blobs: dict[str, bytes] = {}
        self._head_ref: RevisionId | None = None
        self._lock = StoreLock(timeout=self._config.lock_timeout)

    @classmethod
    def _default_config(cls) -> MemoryConfig:
        """Create default configuration."""
        return MemoryConfig()

    def _do_initialize(self) -> None:
        with self._lock:
            if self._initialized:
                raise RepositoryExists()
            self._initialized = True

    def is_initialized(self) -> bool:
        return self._initialized

    # -------------------------------------------------------------------------
    # Storage hooks
    # -------------------------------------------------------------------------

    def _head_id(self) -> RevisionId | None:
        return self._head_ref

    def _set_head(self, commit_id: RevisionId) -> None:
        self._head_ref = commit_id

    def _find_commit(self, commit_id: RevisionId) -> Commit | None:
        return self._commits.get(commit_id)

    def _write_commit(self, commit: Commit) -> None:
        self._commits[commit.id] = commit

    def _commit_ids(self) -> Iterable[RevisionId]:
        return list(self._commits)

    def _read_blob(self, digest: str) -> bytes:
        return self._blobs[digest]

    def _write_blob(self, digest: str, data: bytes) -> None:
        limit = self._config.max_blob_bytes
        if limit and len(data) > limit:
            raise UnknownError(f"content of {len(data)} bytes exceeds limit of {limit}")
        self._blobs.setdefault(digest, data)

    def _write_lock(self) -> StoreLock:
        return self._lock

    def __repr__(self) -> str:
        return f"MemoryFileStore(revisions={len(self._commits)})"
