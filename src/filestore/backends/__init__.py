"""Reference backends for the filestore contract."""

from filestore.backends.filesystem import FileSystemConfig, FileSystemFileStore
from filestore.backends.memory import MemoryConfig, MemoryFileStore

__all__ = [
    "FileSystemConfig",
    "FileSystemFileStore",
    "MemoryConfig",
    "MemoryFileStore",
]
