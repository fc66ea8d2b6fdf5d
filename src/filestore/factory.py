"""Factory functions for creating file stores.

This module provides a registry-based factory for store instances. New
backends can be registered at runtime; callers then select them by name
and keep depending only on the ``FileStore`` contract.
"""

from __future__ import annotations

from typing import Any, Callable

from filestore.base import FileStore
from filestore.errors import UnsupportedOperation

# Type for store constructor functions
StoreConstructor = Callable[..., FileStore]

# Registry of store constructors
_store_registry: dict[str, StoreConstructor] = {}


def register_store(name: str) -> Callable[[StoreConstructor], StoreConstructor]:
    """Decorator to register a store backend.

    Args:
        name: Name to register the store under.

    Example:
        >>> @register_store("sqlite")
        ... class SqliteFileStore(FileStore):
        ...     ...
    """

    def decorator(cls: StoreConstructor) -> StoreConstructor:
        _store_registry[name.lower().strip()] = cls
        return cls

    return decorator


def list_stores() -> list[str]:
    """Names accepted by ``get_store``."""
    return sorted(set(_store_registry) | {"filesystem", "memory"})


def get_store(backend: str = "filesystem", **kwargs: Any) -> FileStore:
    """Create a store instance for the specified backend.

    Args:
        backend: Name of the store backend. Built in:
            - "filesystem": Local directory with revision log (default)
            - "memory": In-memory history (for testing)
        **kwargs: Backend-specific configuration options.

    Returns:
        An uninitialized store handle; call ``initialize()`` for new storage.

    Raises:
        UnsupportedOperation: If no backend of that name exists.

    Example:
        >>> store = get_store("filesystem", base_path="wiki")
        >>> store = get_store("memory")
    """
    backend = backend.lower().strip()

    if backend in _store_registry:
        return _store_registry[backend](**kwargs)

    # Lazy load built-in backends
    if backend in ("filesystem", "fs", "file"):
        from filestore.backends.filesystem import FileSystemFileStore

        return FileSystemFileStore(**kwargs)

    if backend == "memory":
        from filestore.backends.memory import MemoryFileStore

        return MemoryFileStore(**kwargs)

    raise UnsupportedOperation(path=backend)
