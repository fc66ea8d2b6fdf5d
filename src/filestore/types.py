"""Value types shared by every filestore backend.

These are the entities that cross the ``FileStore`` boundary: resources,
authors, changes, revisions, time ranges, merge results and the search
model. All of them are immutable; backends construct ``Revision`` values,
callers only read them.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Sequence

RevisionId = str
Description = str


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# Resources
# =============================================================================


class ResourceKind(Enum):
    """Kind of a tracked resource."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class Resource:
    """A named file or directory in a store.

    Attributes:
        kind: Whether this is a file or a directory.
        path: Resource path. Listings from ``FileStore.directory`` carry the
            entry name relative to the listed directory.
    """

    kind: ResourceKind
    path: str

    @classmethod
    def file(cls, path: str) -> "Resource":
        return cls(ResourceKind.FILE, path)

    @classmethod
    def directory(cls, path: str) -> "Resource":
        return cls(ResourceKind.DIRECTORY, path)

    @property
    def is_file(self) -> bool:
        return self.kind is ResourceKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind is ResourceKind.DIRECTORY


# =============================================================================
# Provenance
# =============================================================================


@dataclass(frozen=True)
class Author:
    """Who made a change."""

    name: str
    email: str = ""

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "email": self.email}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Author":
        return cls(name=data["name"], email=data.get("email", ""))


class ChangeKind(Enum):
    """What happened to a path in a revision."""

    ADDED = "added"
    DELETED = "deleted"
    MODIFIED = "modified"


@dataclass(frozen=True)
class Change:
    """One add, delete or modify event within a revision."""

    kind: ChangeKind
    path: str

    @classmethod
    def added(cls, path: str) -> "Change":
        return cls(ChangeKind.ADDED, path)

    @classmethod
    def deleted(cls, path: str) -> "Change":
        return cls(ChangeKind.DELETED, path)

    @classmethod
    def modified(cls, path: str) -> "Change":
        return cls(ChangeKind.MODIFIED, path)

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind.value, "path": self.path}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Change":
        return cls(ChangeKind(data["kind"]), data["path"])


# =============================================================================
# History
# =============================================================================


@dataclass(frozen=True)
class Revision:
    """Metadata and change list of one historical snapshot.

    Attributes:
        id: Backend-defined revision identifier. Compare ids with
            ``FileStore.ids_match``, never with ``==``.
        timestamp: When the revision was committed (aware, UTC).
        author: Who committed it.
        description: Commit message.
        changes: Everything that changed, in order. Never empty for a
            revision returned by a store.
    """

    id: RevisionId
    timestamp: datetime
    author: Author
    description: Description
    changes: tuple[Change, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "timestamp", as_utc(self.timestamp))
        object.__setattr__(self, "changes", tuple(self.changes))

    def touches(self, paths: Iterable[str]) -> bool:
        """True if any change is at or below one of ``paths`` (or ``paths`` is empty)."""
        wanted = [p.strip("/") for p in paths]
        if not wanted:
            return True
        for change in self.changes:
            for path in wanted:
                if not path or change.path == path or change.path.startswith(path + "/"):
                    return True
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "author": self.author.to_dict(),
            "description": self.description,
            "changes": [c.to_dict() for c in self.changes],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Revision":
        timestamp = data["timestamp"]
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
        return cls(
            id=data["id"],
            timestamp=timestamp,
            author=Author.from_dict(data["author"]),
            description=data.get("description", ""),
            changes=tuple(Change.from_dict(c) for c in data.get("changes", [])),
        )


@dataclass(frozen=True)
class TimeRange:
    """Inclusive date filter; a missing bound is unbounded on that side."""

    start: datetime | None = None
    end: datetime | None = None

    @classmethod
    def all_time(cls) -> "TimeRange":
        return cls()

    def contains(self, timestamp: datetime) -> bool:
        ts = as_utc(timestamp)
        if self.start is not None and ts < as_utc(self.start):
            return False
        if self.end is not None and ts > as_utc(self.end):
            return False
        return True


@dataclass(frozen=True)
class MergeInfo:
    """Result of reconciling an edit with a concurrent revision.

    Attributes:
        revision: The revision the edit was merged with.
        conflicts: True if the merge left conflict markers in ``text``.
        text: The merged content.
    """

    revision: Revision
    conflicts: bool
    text: str


# =============================================================================
# Search
# =============================================================================


@dataclass(frozen=True)
class SearchQuery:
    """Pattern-matching configuration for ``FileStore.search``.

    Attributes:
        patterns: Literal strings to look for.
        whole_words: Match patterns only on word boundaries.
        match_all: Only report hits from resources where every pattern matches.
        ignore_case: Case-insensitive matching.
    """

    patterns: Sequence[str] = ()
    whole_words: bool = True
    match_all: bool = True
    ignore_case: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.patterns, str):
            raise TypeError("patterns must be a sequence of strings, not a string")
        object.__setattr__(self, "patterns", tuple(self.patterns))


DEFAULT_SEARCH_QUERY = SearchQuery()


def default_search_query(**overrides: Any) -> SearchQuery:
    """Default query (whole words, match all, ignore case) with ``overrides`` applied."""
    if not overrides:
        return DEFAULT_SEARCH_QUERY
    return replace(DEFAULT_SEARCH_QUERY, **overrides)


@dataclass(frozen=True)
class SearchMatch:
    """One located hit."""

    resource_name: str
    line_number: int
    line: str
