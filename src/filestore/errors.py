"""Error taxonomy shared by all filestore backends.

Every backend maps its native failures onto this closed set. Callers match
on the exception class (or on ``err.kind``), never on message text; only
``UnknownError`` carries a meaningful message.

Example:
    >>> try:
    ...     store.retrieve("missing.txt")
    ... except NotFound:
    ...     ...
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator

import filelock

logger = logging.getLogger(__name__)


class FileStoreErrorKind(Enum):
    """The closed set of failure kinds."""

    REPOSITORY_EXISTS = "RepositoryExists"
    RESOURCE_EXISTS = "ResourceExists"
    NOT_FOUND = "NotFound"
    ILLEGAL_RESOURCE_NAME = "IllegalResourceName"
    UNCHANGED = "Unchanged"
    UNSUPPORTED_OPERATION = "UnsupportedOperation"
    UNKNOWN_ERROR = "UnknownError"


class FileStoreError(Exception):
    """Base exception for all filestore errors.

    Attributes:
        kind: Which member of the closed taxonomy this is.
        path: Offending resource path, when one applies (diagnostic only).
        revision_id: Offending revision id, when one applies (diagnostic only).
    """

    kind: FileStoreErrorKind

    def __init__(
        self,
        *,
        path: str | None = None,
        revision_id: str | None = None,
    ) -> None:
        self.path = path
        self.revision_id = revision_id
        super().__init__(str(self))

    @property
    def message(self) -> str:
        return ""

    def __str__(self) -> str:
        return self.kind.value

    def __repr__(self) -> str:
        details = []
        if self.path is not None:
            details.append(f"path={self.path!r}")
        if self.revision_id is not None:
            details.append(f"revision_id={self.revision_id!r}")
        return f"{type(self).__name__}({', '.join(details)})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, FileStoreError):
            return NotImplemented
        return self.kind is other.kind and self.message == other.message

    def __hash__(self) -> int:
        return hash((self.kind, self.message))


class RepositoryExists(FileStoreError):
    """Raised when initializing storage that is already initialized."""

    kind = FileStoreErrorKind.REPOSITORY_EXISTS


class ResourceExists(FileStoreError):
    """Raised when a create or rename target collides with an existing resource."""

    kind = FileStoreErrorKind.RESOURCE_EXISTS


class NotFound(FileStoreError):
    """Raised when a resource, path or revision id does not exist."""

    kind = FileStoreErrorKind.NOT_FOUND


class IllegalResourceName(FileStoreError):
    """Raised when a path violates the store's naming constraints."""

    kind = FileStoreErrorKind.ILLEGAL_RESOURCE_NAME


class Unchanged(FileStoreError):
    """Raised when a save would not change the resource."""

    kind = FileStoreErrorKind.UNCHANGED


class UnsupportedOperation(FileStoreError):
    """Raised when the backend cannot perform the operation at all."""

    kind = FileStoreErrorKind.UNSUPPORTED_OPERATION


class UnknownError(FileStoreError):
    """Backend-specific failure that fits no other kind."""

    kind = FileStoreErrorKind.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        revision_id: str | None = None,
    ) -> None:
        self._message = message
        super().__init__(path=path, revision_id=revision_id)

    @property
    def message(self) -> str:
        return self._message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self._message}"

    def __repr__(self) -> str:
        return f"UnknownError({self._message!r})"


@contextmanager
def map_errors(context: str) -> Iterator[None]:
    """Translate native backend failures into ``UnknownError``.

    ``FileStoreError`` passes through unchanged; the original exception is
    chained as ``__cause__``.

    Args:
        context: Short description of the operation, used in the message.
    """
    try:
        yield
    except FileStoreError:
        raise
    except filelock.Timeout as e:
        logger.warning("Timed out waiting for store lock during %s: %s", context, e)
        raise UnknownError(f"{context}: timed out waiting for lock {e.lock_file}") from e
    except (OSError, ValueError) as e:
        logger.warning("Backend failure during %s: %s", context, e)
        raise UnknownError(f"{context}: {e}") from e
