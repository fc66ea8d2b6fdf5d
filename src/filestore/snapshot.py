"""Snapshot history shared by the reference backends.

A ``SnapshotFileStore`` records history as a chain of commits. Each commit
holds the ``Revision`` metadata, its parent's id and the full tree of the
store at that point (resource path -> content hash). Content lives in
immutable, content-addressed blobs. Subclasses only decide where commits,
blobs and the head pointer are kept; every contract operation is implemented
here once.
"""

from __future__ import annotations

import hashlib
import json
import logging
from abc import abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from filestore.base import ConfigT, FileStore
from filestore.errors import NotFound, ResourceExists, Unchanged, UnknownError
from filestore.search import search_resources
from filestore.types import (
    Author,
    Change,
    Description,
    Resource,
    Revision,
    RevisionId,
    SearchMatch,
    SearchQuery,
    TimeRange,
)
from filestore.utils import content_hash, directory_entries, hashes_match, parent_dirs

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Commit:
    """One recorded revision plus the tree it produced.

    Attributes:
        revision: Public metadata.
        parent: Id of the previous commit, None for the first.
        tree: Every tracked path mapped to its content hash.
    """

    revision: Revision
    parent: RevisionId | None
    tree: Mapping[str, str] = field(default_factory=dict)

    @property
    def id(self) -> RevisionId:
        return self.revision.id

    def to_dict(self) -> dict[str, Any]:
        return {
            "revision": self.revision.to_dict(),
            "parent": self.parent,
            "tree": dict(sorted(self.tree.items())),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Commit":
        return cls(
            revision=Revision.from_dict(data["revision"]),
            parent=data.get("parent"),
            tree=dict(data.get("tree", {})),
        )


class SnapshotFileStore(FileStore[ConfigT]):
    """``FileStore`` over a chain of full-tree commits.

    Subclasses provide persistence through the storage hooks below and a
    write lock; reads never take the lock because commits and blobs are
    immutable and the head pointer is replaced in one step.
    """

    # -------------------------------------------------------------------------
    # Storage hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    def _head_id(self) -> RevisionId | None:
        """Id of the newest commit, None before the first commit."""
        pass

    @abstractmethod
    def _set_head(self, commit_id: RevisionId) -> None:
        pass

    @abstractmethod
    def _find_commit(self, commit_id: RevisionId) -> Commit | None:
        """Commit stored under exactly this id, or None."""
        pass

    @abstractmethod
    def _write_commit(self, commit: Commit) -> None:
        pass

    @abstractmethod
    def _commit_ids(self) -> Iterable[RevisionId]:
        pass

    @abstractmethod
    def _read_blob(self, digest: str) -> bytes:
        pass

    @abstractmethod
    def _write_blob(self, digest: str, data: bytes) -> None:
        pass

    @abstractmethod
    def _write_lock(self) -> AbstractContextManager[Any]:
        pass

    def _publish(self, commit: Commit, previous: Mapping[str, str]) -> None:
        """Called under the write lock after the head moved to ``commit``."""
        pass

    # -------------------------------------------------------------------------
    # Commit plumbing
    # -------------------------------------------------------------------------

    def _head(self) -> Commit | None:
        head_id = self._head_id()
        if head_id is None:
            return None
        commit = self._find_commit(head_id)
        if commit is None:
            raise UnknownError(f"head points at missing revision {head_id}")
        return commit

    def _tree(self) -> dict[str, str]:
        head = self._head()
        return dict(head.tree) if head is not None else {}

    def _resolve(self, revision_id: RevisionId) -> Commit:
        if not isinstance(revision_id, str) or not revision_id:
            raise NotFound(revision_id=str(revision_id))
        commit = self._find_commit(revision_id)
        if commit is not None:
            return commit
        candidates = [cid for cid in self._commit_ids() if hashes_match(cid, revision_id)]
        if not candidates:
            raise NotFound(revision_id=revision_id)
        if len(candidates) > 1:
            raise UnknownError(f"ambiguous revision id {revision_id!r}", revision_id=revision_id)
        commit = self._find_commit(candidates[0])
        if commit is None:
            raise NotFound(revision_id=revision_id)
        return commit

    def _iter_commits(self) -> Iterable[Commit]:
        """Commits from newest to oldest."""
        commit = self._head()
        while commit is not None:
            yield commit
            if commit.parent is None:
                break
            parent = self._find_commit(commit.parent)
            if parent is None:
                raise UnknownError(f"revision {commit.id} has missing parent {commit.parent}")
            commit = parent

    def _make_id(
        self,
        parent: RevisionId | None,
        revision_fields: dict[str, Any],
        tree: Mapping[str, str],
    ) -> RevisionId:
        payload = json.dumps(
            {"parent": parent, "revision": revision_fields, "tree": sorted(tree.items())},
            sort_keys=True,
            default=str,
        )
        return hashlib.sha1(payload.encode("utf-8")).hexdigest()

    def _commit(
        self,
        previous: Mapping[str, str],
        tree: dict[str, str],
        changes: list[Change],
        author: Author,
        description: Description,
    ) -> RevisionId:
        parent = self._head_id()
        timestamp = self._now()
        fields = {
            "timestamp": timestamp.isoformat(),
            "author": author.to_dict(),
            "description": description,
            "changes": [c.to_dict() for c in changes],
        }
        rev_id = self._make_id(parent, fields, tree)
        revision = Revision(
            id=rev_id,
            timestamp=timestamp,
            author=author,
            description=description,
            changes=tuple(changes),
        )
        commit = Commit(revision=revision, parent=parent, tree=tree)
        self._write_commit(commit)
        self._set_head(rev_id)
        self._publish(commit, previous)
        logger.info(
            "Committed %s by %s (%d change%s)",
            rev_id[:12],
            author.name,
            len(changes),
            "" if len(changes) == 1 else "s",
        )
        return rev_id

    @staticmethod
    def _check_free(name: str, tree: Mapping[str, str]) -> None:
        """Raise ResourceExists if ``name`` collides with a file or directory in ``tree``."""
        if name in tree:
            raise ResourceExists(path=name)
        prefix = name + "/"
        if any(path.startswith(prefix) for path in tree):
            raise ResourceExists(path=name)
        for parent in parent_dirs(name):
            if parent in tree:
                raise ResourceExists(path=parent)

    # -------------------------------------------------------------------------
    # Contract operations
    # -------------------------------------------------------------------------

    def _do_save(
        self, name: str, author: Author, description: Description, data: bytes
    ) -> RevisionId:
        digest = content_hash(data)
        with self._write_lock():
            previous = self._tree()
            if name in previous:
                if previous[name] == digest:
                    raise Unchanged(path=name)
                change = Change.modified(name)
            else:
                self._check_free(name, previous)
                change = Change.added(name)
            self._write_blob(digest, data)
            tree = dict(previous)
            tree[name] = digest
            return self._commit(previous, tree, [change], author, description)

    def _do_delete(self, name: str, author: Author, description: Description) -> RevisionId:
        with self._write_lock():
            previous = self._tree()
            if name not in previous:
                raise NotFound(path=name)
            tree = dict(previous)
            del tree[name]
            return self._commit(previous, tree, [Change.deleted(name)], author, description)

    def _do_rename(
        self, old: str, new: str, author: Author, description: Description
    ) -> RevisionId:
        with self._write_lock():
            previous = self._tree()
            if old not in previous:
                raise NotFound(path=old)
            if new in previous:
                raise ResourceExists(path=new)
            tree = dict(previous)
            digest = tree.pop(old)
            self._check_free(new, tree)
            tree[new] = digest
            changes = [Change.deleted(old), Change.added(new)]
            return self._commit(previous, tree, changes, author, description)

    def _do_retrieve(self, name: str, revision_id: RevisionId | None) -> bytes:
        if revision_id is None:
            commit = self._head()
            if commit is None:
                raise NotFound(path=name)
        else:
            commit = self._resolve(revision_id)
        digest = commit.tree.get(name)
        if digest is None:
            raise NotFound(path=name, revision_id=revision_id)
        return self._read_blob(digest)

    def _do_history(
        self, names: list[str], time_range: TimeRange, limit: int | None
    ) -> list[Revision]:
        revisions: list[Revision] = []
        for commit in self._iter_commits():
            revision = commit.revision
            if not time_range.contains(revision.timestamp):
                continue
            if not revision.touches(names):
                continue
            revisions.append(revision)
            if limit is not None and len(revisions) >= limit:
                break
        return revisions

    def _do_latest(self, name: str) -> RevisionId:
        head = self._head()
        if head is None or name not in head.tree:
            raise NotFound(path=name)
        for commit in self._iter_commits():
            if any(change.path == name for change in commit.revision.changes):
                return commit.id
        raise UnknownError(f"no revision records a change to tracked path {name}")

    def _do_revision(self, revision_id: RevisionId) -> Revision:
        return self._resolve(revision_id).revision

    def _do_index(self) -> list[str]:
        return list(self._tree())

    def _do_directory(self, name: str) -> list[Resource]:
        files, dirs = directory_entries(self._tree(), name)
        if name and not files and not dirs:
            raise NotFound(path=name)
        return [Resource.file(f) for f in files] + [Resource.directory(d) for d in dirs]

    def _do_search(self, query: SearchQuery) -> list[SearchMatch]:
        tree = self._tree()
        return search_resources(
            ((path, self._read_blob(digest)) for path, digest in tree.items()),
            query,
        )

    def ids_match(self, a: RevisionId, b: RevisionId) -> bool:
        try:
            return hashes_match(a, b)
        except (AttributeError, TypeError):
            return False
