"""Backend-agnostic versioned file store.

Callers program against ``FileStore`` and the value types here; a concrete
backend is chosen once, usually through ``get_store``.

Example:
    >>> from filestore import Author, TEXT, get_store
    >>>
    >>> store = get_store("filesystem", base_path="wiki")
    >>> store.initialize()
    >>> ada = Author("Ada", "ada@example.com")
    >>> rev = store.save("Front Page.md", ada, "Initial page", "# Welcome")
    >>> store.retrieve("Front Page.md", contents=TEXT)
    '# Welcome'
    >>> store.history(["Front Page.md"])[0].description
    'Initial page'
"""

from filestore.base import FileStore, FileStoreConfig
from filestore.contents import BYTES, TEXT, BytesContents, Contents, TextContents
from filestore.errors import (
    FileStoreError,
    FileStoreErrorKind,
    IllegalResourceName,
    NotFound,
    RepositoryExists,
    ResourceExists,
    Unchanged,
    UnknownError,
    UnsupportedOperation,
)
from filestore.factory import get_store, list_stores, register_store
from filestore.types import (
    DEFAULT_SEARCH_QUERY,
    Author,
    Change,
    ChangeKind,
    Description,
    MergeInfo,
    Resource,
    ResourceKind,
    Revision,
    RevisionId,
    SearchMatch,
    SearchQuery,
    TimeRange,
    default_search_query,
)

__version__ = "0.1.0"

__all__ = [
    # Contract
    "FileStore",
    "FileStoreConfig",
    # Content marshalling
    "Contents",
    "BytesContents",
    "TextContents",
    "BYTES",
    "TEXT",
    # Value types
    "Author",
    "Change",
    "ChangeKind",
    "Description",
    "MergeInfo",
    "Resource",
    "ResourceKind",
    "Revision",
    "RevisionId",
    "SearchMatch",
    "SearchQuery",
    "TimeRange",
    "DEFAULT_SEARCH_QUERY",
    "default_search_query",
    # Errors
    "FileStoreError",
    "FileStoreErrorKind",
    "RepositoryExists",
    "ResourceExists",
    "NotFound",
    "IllegalResourceName",
    "Unchanged",
    "UnsupportedOperation",
    "UnknownError",
    # Factory functions
    "get_store",
    "list_stores",
    "register_store",
]
