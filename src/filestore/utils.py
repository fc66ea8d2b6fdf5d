"""Helpers shared by backends: resource-name rules, id matching, path walking."""

from __future__ import annotations

import hashlib
from typing import Collection, Iterable

from filestore.errors import IllegalResourceName

# Shortest abbreviation accepted as naming a revision.
MIN_ABBREVIATED_ID = 4


def normalize_resource_name(
    name: str,
    reserved: Collection[str] = (),
    allow_root: bool = False,
) -> str:
    """Validate a resource name and return its canonical form.

    Names are relative, ``/``-separated paths. A single trailing slash is
    tolerated and stripped.

    Args:
        name: Name supplied by the caller.
        reserved: Top-level names owned by the backend (e.g. its metadata dir).
        allow_root: Accept ``""`` as the store root (directory listings).

    Returns:
        The normalized name.

    Raises:
        IllegalResourceName: If the name is empty, absolute, contains empty,
            ``.`` or ``..`` segments, NUL or backslash, or enters a reserved
            name.
    """
    if not isinstance(name, str):
        raise IllegalResourceName(path=repr(name))
    if name in ("", "/") and allow_root:
        return ""
    candidate = name[:-1] if name.endswith("/") else name
    if not candidate or candidate.startswith("/") or "\x00" in candidate or "\\" in candidate:
        raise IllegalResourceName(path=name)
    segments = candidate.split("/")
    if any(seg in ("", ".", "..") for seg in segments):
        raise IllegalResourceName(path=name)
    if segments[0] in reserved:
        raise IllegalResourceName(path=name)
    return candidate


def parent_dirs(path: str) -> list[str]:
    """All ancestor directories of ``path``, nearest last (``"a/b/c"`` -> ``["a", "a/b"]``)."""
    parts = path.split("/")[:-1]
    return ["/".join(parts[: i + 1]) for i in range(len(parts))]


def directory_entries(paths: Iterable[str], directory: str) -> tuple[set[str], set[str]]:
    """Split tracked file paths into the files and subdirectories directly under ``directory``.

    Returns:
        ``(files, subdirectories)`` as names relative to ``directory``.
    """
    prefix = directory + "/" if directory else ""
    files: set[str] = set()
    dirs: set[str] = set()
    for path in paths:
        if not path.startswith(prefix):
            continue
        rest = path[len(prefix):]
        head, sep, _ = rest.partition("/")
        if sep:
            dirs.add(head)
        else:
            files.add(head)
    return files, dirs


def hashes_match(a: str, b: str) -> bool:
    """True if two hash-style ids name the same revision.

    Ids match when equal, or when one is a prefix of the other and the
    shorter is at least ``MIN_ABBREVIATED_ID`` characters long.
    """
    if a == b:
        return True
    a, b = a.lower(), b.lower()
    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    return len(shorter) >= MIN_ABBREVIATED_ID and longer.startswith(shorter)


def content_hash(data: bytes) -> str:
    """Hex digest naming a content blob."""
    return hashlib.sha1(data).hexdigest()
