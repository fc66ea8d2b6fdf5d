"""Base classes and interfaces for versioned file stores.

This module defines the ``FileStore`` contract every backend implements.
Public operations are template methods: they validate arguments, marshal
content and log, then delegate to ``_do_*`` hooks that deal only in raw
bytes and canonical resource names. Backends implement the hooks and map
their native failures onto ``filestore.errors``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Generic, Sequence, TypeVar

from filestore.contents import BYTES, Contents, resolve_contents
from filestore.errors import UnknownError
from filestore.types import (
    Author,
    Description,
    Resource,
    Revision,
    RevisionId,
    SearchMatch,
    SearchQuery,
    TimeRange,
)
from filestore.utils import normalize_resource_name

logger = logging.getLogger(__name__)

T = TypeVar("T")
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class FileStoreConfig:
    """Base configuration for all file stores.

    Subclasses extend this with backend-specific options.

    Attributes:
        base_path: Root directory for backends that persist to disk.
        namespace: Optional subdirectory isolating several stores under one root.
        lock_timeout: Seconds to wait for the write lock (None waits forever).
        metadata_dir: Reserved top-level name holding backend metadata.
        create_dirs: Whether to create ``base_path`` on initialize.
        pretty_print: Whether to indent persisted JSON records.
        metadata: Free-form metadata recorded by the backend.
    """

    base_path: str = ".filestore-data"
    namespace: str = ""
    lock_timeout: float | None = 10.0
    metadata_dir: str = ".filestore"
    create_dirs: bool = True
    pretty_print: bool = False
    metadata: dict[str, Any] = field(default_factory=dict)

    def get_full_path(self) -> Path:
        """Get the storage root including namespace."""
        path = Path(self.base_path)
        if self.namespace:
            path = path / self.namespace
        return path


ConfigT = TypeVar("ConfigT", bound=FileStoreConfig)


# =============================================================================
# Abstract Base Store
# =============================================================================


class FileStore(ABC, Generic[ConfigT]):
    """A versioned store of named resources.

    The contract is identical for every backend: callers depend on this
    class, never on a concrete implementation. All operations block and
    raise ``FileStoreError`` subclasses on failure.

    Example:
        >>> store = get_store("memory")
        >>> store.initialize()
        >>> rev = store.save("notes.txt", Author("Ada", "ada@example.com"), "start", "hi")
        >>> store.retrieve("notes.txt", contents=TEXT)
        'hi'
        >>> [r.description for r in store.history(["notes.txt"])]
        ['start']
    """

    def __init__(self, config: ConfigT | None = None, clock: Clock | None = None) -> None:
        """Initialize the store handle.

        Args:
            config: Store configuration. If None, uses default configuration.
            clock: Source of revision timestamps (defaults to UTC now).
        """
        self._config = config or self._default_config()
        self._clock = clock or utc_now

    @classmethod
    @abstractmethod
    def _default_config(cls) -> ConfigT:
        """Create default configuration for this store type."""
        pass

    @property
    def config(self) -> ConfigT:
        """Get the store configuration."""
        return self._config

    @property
    def reserved_names(self) -> tuple[str, ...]:
        """Top-level names callers may not use."""
        return ()

    def _now(self) -> datetime:
        return self._clock().astimezone(timezone.utc)

    def _name(self, name: str, allow_root: bool = False) -> str:
        return normalize_resource_name(name, self.reserved_names, allow_root=allow_root)

    def _check_initialized(self) -> None:
        if not self.is_initialized():
            raise UnknownError(f"{type(self).__name__} is not initialized")

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def initialize(self) -> None:
        """Create the backing storage.

        Raises:
            RepositoryExists: If the storage is already initialized.
        """
        self._do_initialize()
        logger.info("Initialized %s", self)

    @abstractmethod
    def is_initialized(self) -> bool:
        """Whether backing storage exists."""
        pass

    def close(self) -> None:
        """Release any resources held by the handle."""
        pass

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def save(
        self,
        path: str,
        author: Author,
        description: Description,
        contents: T,
        marshaller: Contents[T] | None = None,
    ) -> RevisionId:
        """Commit new contents for a resource.

        Args:
            path: Resource to save.
            author: Author of the change.
            description: Description of the change.
            contents: New contents; bytes and str are marshalled automatically.
            marshaller: Explicit ``Contents`` for other value types.

        Returns:
            Id of the new revision.

        Raises:
            Unchanged: If the contents equal the current revision's.
            ResourceExists: If a directory occupies ``path`` or a file
                occupies one of its parent directories.
            IllegalResourceName: If ``path`` is not a legal name.
        """
        name = self._name(path)
        data = resolve_contents(contents, marshaller).to_bytes(contents)
        self._check_initialized()
        rev_id = self._do_save(name, author, description, data)
        logger.debug("Saved %s (%d bytes) as %s", name, len(data), rev_id)
        return rev_id

    def delete(self, path: str, author: Author, description: Description) -> RevisionId:
        """Remove a resource, recording a ``Deleted`` change.

        Raises:
            NotFound: If no file exists at ``path``.
        """
        name = self._name(path)
        self._check_initialized()
        rev_id = self._do_delete(name, author, description)
        logger.debug("Deleted %s as %s", name, rev_id)
        return rev_id

    def rename(
        self,
        old_path: str,
        new_path: str,
        author: Author,
        description: Description,
    ) -> RevisionId:
        """Move a resource, recording ``Deleted(old)`` and ``Added(new)``.

        Raises:
            NotFound: If ``old_path`` does not exist.
            ResourceExists: If ``new_path`` collides with an existing resource.
            IllegalResourceName: If either name is not legal.
        """
        old = self._name(old_path)
        new = self._name(new_path)
        self._check_initialized()
        rev_id = self._do_rename(old, new, author, description)
        logger.debug("Renamed %s -> %s as %s", old, new, rev_id)
        return rev_id

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def retrieve(
        self,
        path: str,
        revision_id: RevisionId | None = None,
        contents: Contents[T] = BYTES,  # type: ignore[assignment]
    ) -> T:
        """Read a resource, optionally as of an older revision.

        Args:
            path: Resource to read.
            revision_id: Revision to read from; None for the latest.
            contents: Marshaller for the result (raw bytes by default).

        Raises:
            NotFound: If the path or the revision id is unknown.
        """
        name = self._name(path)
        self._check_initialized()
        return contents.from_bytes(self._do_retrieve(name, revision_id))

    def history(
        self,
        paths: Sequence[str] = (),
        time_range: TimeRange | None = None,
        limit: int | None = None,
    ) -> list[Revision]:
        """Revisions touching any of ``paths`` within ``time_range``, newest first.

        Args:
            paths: Resources to get history for; empty for all.
            time_range: Date filter; None for all time.
            limit: Maximum number of revisions to return.
        """
        if isinstance(paths, str):
            paths = [paths]
        names = [self._name(p, allow_root=True) for p in paths]
        self._check_initialized()
        if limit is not None and limit <= 0:
            return []
        return self._do_history(names, time_range or TimeRange(), limit)

    def latest(self, path: str) -> RevisionId:
        """Id of the most recent revision touching a currently tracked resource.

        Raises:
            NotFound: If ``path`` is not tracked.
        """
        name = self._name(path)
        self._check_initialized()
        return self._do_latest(name)

    def revision(self, revision_id: RevisionId) -> Revision:
        """Full metadata for a revision id (abbreviations accepted).

        Raises:
            NotFound: If there is no such revision.
        """
        self._check_initialized()
        return self._do_revision(revision_id)

    def index(self) -> list[str]:
        """All tracked resource paths, sorted."""
        self._check_initialized()
        return sorted(self._do_index())

    def directory(self, path: str = "") -> list[Resource]:
        """Entries directly under ``path`` (``""`` for the root), sorted by name.

        Raises:
            NotFound: If ``path`` is not a directory.
        """
        name = self._name(path, allow_root=True)
        self._check_initialized()
        return sorted(self._do_directory(name), key=lambda r: (r.path, r.kind.value))

    def search(self, query: SearchQuery) -> list[SearchMatch]:
        """Search the latest content of every tracked resource."""
        self._check_initialized()
        return self._do_search(query)

    @abstractmethod
    def ids_match(self, a: RevisionId, b: RevisionId) -> bool:
        """True if both ids denote the same revision. Pure; never raises.

        Revision ids may have several spellings (e.g. abbreviated hashes),
        so compare ids through this predicate rather than ``==``.
        """
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    # -------------------------------------------------------------------------
    # Backend hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    def _do_initialize(self) -> None:
        pass

    @abstractmethod
    def _do_save(
        self, name: str, author: Author, description: Description, data: bytes
    ) -> RevisionId:
        pass

    @abstractmethod
    def _do_retrieve(self, name: str, revision_id: RevisionId | None) -> bytes:
        pass

    @abstractmethod
    def _do_delete(self, name: str, author: Author, description: Description) -> RevisionId:
        pass

    @abstractmethod
    def _do_rename(
        self, old: str, new: str, author: Author, description: Description
    ) -> RevisionId:
        pass

    @abstractmethod
    def _do_history(
        self, names: list[str], time_range: TimeRange, limit: int | None
    ) -> list[Revision]:
        pass

    @abstractmethod
    def _do_latest(self, name: str) -> RevisionId:
        pass

    @abstractmethod
    def _do_revision(self, revision_id: RevisionId) -> Revision:
        pass

    @abstractmethod
    def _do_index(self) -> list[str]:
        pass

    @abstractmethod
    def _do_directory(self, name: str) -> list[Resource]:
        pass

    @abstractmethod
    def _do_search(self, query: SearchQuery) -> list[SearchMatch]:
        pass
