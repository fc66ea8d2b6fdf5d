"""Operations built generically on top of the ``FileStore`` contract.

Nothing here knows about a particular backend; every helper composes the
contract's own operations, so it works identically for any store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from enum import Enum
from typing import TypeVar

from filestore.base import FileStore
from filestore.contents import BYTES, TEXT, Contents
from filestore.errors import NotFound, ResourceExists
from filestore.merge import merge_texts
from filestore.types import (
    Author,
    Description,
    MergeInfo,
    Resource,
    Revision,
    RevisionId,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def create(
    store: FileStore,
    path: str,
    author: Author,
    description: Description,
    contents: T,
    marshaller: Contents[T] | None = None,
) -> RevisionId:
    """Save a new resource, refusing to overwrite.

    Raises:
        ResourceExists: If ``path`` is already tracked.
    """
    try:
        store.latest(path)
    except NotFound:
        return store.save(path, author, description, contents, marshaller)
    raise ResourceExists(path=path)


def modify(
    store: FileStore,
    path: str,
    original_id: RevisionId,
    author: Author,
    description: Description,
    text: str,
) -> MergeInfo | None:
    """Save an edit made against ``original_id``, merging if the resource moved on.

    If the latest revision of ``path`` is still ``original_id`` the edit is
    saved and None is returned. Otherwise nothing is saved; the edit is
    three-way merged with the latest text (using the original as the base)
    and the result is returned for the caller to review and resubmit.

    Returns:
        None if saved, else a ``MergeInfo`` against the latest revision.
    """
    latest_id = store.latest(path)
    if store.ids_match(latest_id, original_id):
        store.save(path, author, description, text)
        return None

    original = store.retrieve(path, original_id, contents=TEXT)
    latest = store.retrieve(path, latest_id, contents=TEXT)
    conflicts, merged = merge_texts(
        original,
        text,
        latest,
        ours_label="edited",
        theirs_label=latest_id,
    )
    logger.debug(
        "Merged edit of %s against %s with %s",
        path,
        latest_id,
        "conflicts" if conflicts else "no conflicts",
    )
    return MergeInfo(revision=store.revision(latest_id), conflicts=conflicts, text=merged)


# =============================================================================
# Diff
# =============================================================================


class DiffOp(Enum):
    """Kind of a diff chunk."""

    UNCHANGED = "unchanged"
    REMOVED = "removed"
    ADDED = "added"


@dataclass(frozen=True)
class DiffChunk:
    """A run of lines sharing one ``DiffOp``."""

    op: DiffOp
    lines: tuple[str, ...] = field(default_factory=tuple)


def diff_lines(old: list[str], new: list[str]) -> list[DiffChunk]:
    """Group a line diff into chunks."""
    chunks: list[DiffChunk] = []
    matcher = SequenceMatcher(None, old, new, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            chunks.append(DiffChunk(DiffOp.UNCHANGED, tuple(old[i1:i2])))
            continue
        if i2 > i1:
            chunks.append(DiffChunk(DiffOp.REMOVED, tuple(old[i1:i2])))
        if j2 > j1:
            chunks.append(DiffChunk(DiffOp.ADDED, tuple(new[j1:j2])))
    return chunks


def diff(
    store: FileStore,
    path: str,
    from_id: RevisionId | None = None,
    to_id: RevisionId | None = None,
) -> list[DiffChunk]:
    """Line diff of ``path`` between two revisions.

    Args:
        store: Store to read from.
        path: Resource to diff.
        from_id: Older revision; None diffs from empty text.
        to_id: Newer revision; None for the latest.
    """
    old = "" if from_id is None else store.retrieve(path, from_id, contents=TEXT)
    new = store.retrieve(path, to_id, contents=TEXT)
    return diff_lines(old.splitlines(), new.splitlines())


# =============================================================================
# Revision lookup
# =============================================================================


def search_revisions(
    store: FileStore,
    exact: bool,
    path: str,
    description: Description,
) -> list[Revision]:
    """Revisions of ``path`` whose description equals (or contains) ``description``."""
    history = store.history([path])
    if exact:
        return [r for r in history if r.description == description]
    return [r for r in history if description in r.description]


def smart_retrieve(
    store: FileStore,
    exact: bool,
    path: str,
    id_or_description: str | None = None,
    contents: Contents[T] = BYTES,  # type: ignore[assignment]
) -> T:
    """Retrieve by revision id, falling back to a description search.

    ``id_or_description`` is first tried as a revision id; if that is not
    found, the most recent revision of ``path`` whose description matches
    (see ``search_revisions``) is used.

    Raises:
        NotFound: If neither lookup finds a revision.
    """
    if id_or_description is None:
        return store.retrieve(path, None, contents=contents)
    try:
        return store.retrieve(path, id_or_description, contents=contents)
    except NotFound:
        matches = search_revisions(store, exact, path, id_or_description)
        if not matches:
            raise
        return store.retrieve(path, matches[0].id, contents=contents)


@dataclass(frozen=True)
class DirectoryEntry:
    """A directory listing entry with its latest revision (None for directories)."""

    resource: Resource
    revision: Revision | None = None


def rich_directory(store: FileStore, path: str = "") -> list[DirectoryEntry]:
    """Like ``FileStore.directory`` but with each file's latest revision."""
    prefix = path.strip("/")
    entries = []
    for resource in store.directory(path):
        if resource.is_directory:
            entries.append(DirectoryEntry(resource))
            continue
        full = f"{prefix}/{resource.path}" if prefix else resource.path
        entries.append(DirectoryEntry(resource, store.revision(store.latest(full))))
    return entries
