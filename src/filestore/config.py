"""Configuration loading for file stores.

Configuration is layered: dataclass defaults, then an optional YAML or JSON
file, then ``FILESTORE_*`` environment variables, then explicit keyword
overrides.

Example:
    >>> config = resolve_config(FileSystemConfig, "filestore.yaml", lock_timeout=2.0)
    >>> store = FileSystemFileStore(config=config)

Environment variables:
    FILESTORE_BASE_PATH       base_path
    FILESTORE_NAMESPACE       namespace
    FILESTORE_LOCK_TIMEOUT    lock_timeout (seconds; "none" waits forever)
    FILESTORE_METADATA_DIR    metadata_dir
    FILESTORE_CREATE_DIRS     create_dirs ("true"/"false")
    FILESTORE_PRETTY_PRINT    pretty_print ("true"/"false")
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping, TypeVar

import yaml

from filestore.base import FileStoreConfig

logger = logging.getLogger(__name__)

ENV_PREFIX = "FILESTORE_"

ConfigT = TypeVar("ConfigT", bound=FileStoreConfig)


class ConfigError(ValueError):
    """Raised when configuration cannot be loaded or is malformed."""

    pass


def load_config(path: str | Path) -> dict[str, Any]:
    """Load a configuration mapping from a YAML or JSON file.

    Args:
        path: File to read; the format is chosen by extension.

    Returns:
        The configuration mapping (empty for an empty file).

    Raises:
        ConfigError: If the file is missing, unreadable, of an unsupported
            format, or does not contain a mapping.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    suffix = path.suffix.lower()
    try:
        content = path.read_text(encoding="utf-8")
        if suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content) or {}
        elif suffix == ".json":
            data = json.loads(content) if content.strip() else {}
        else:
            raise ConfigError(f"Unsupported configuration format: {suffix}")
    except ConfigError:
        raise
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to load config {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration in {path} must be a mapping")
    # Allow the settings to sit under a top-level "filestore" key.
    if isinstance(data.get("filestore"), dict):
        data = data["filestore"]
    return data


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_timeout(value: str) -> float | None:
    if value.strip().lower() in ("", "none", "null"):
        return None
    try:
        return float(value)
    except ValueError as e:
        raise ConfigError(f"Invalid lock timeout: {value!r}") from e


_ENV_PARSERS = {
    "base_path": str,
    "namespace": str,
    "lock_timeout": _parse_timeout,
    "metadata_dir": str,
    "create_dirs": _parse_bool,
    "pretty_print": _parse_bool,
}


def config_from_environment(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Read ``FILESTORE_*`` variables into a configuration mapping."""
    environ = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    for key, parse in _ENV_PARSERS.items():
        raw = environ.get(ENV_PREFIX + key.upper())
        if raw is not None:
            values[key] = parse(raw)
    return values


def resolve_config(
    config_cls: type[ConfigT] = FileStoreConfig,  # type: ignore[assignment]
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
    **overrides: Any,
) -> ConfigT:
    """Build a configuration from defaults, file, environment and overrides.

    Keys that are not fields of ``config_cls`` are ignored.
    """
    merged: dict[str, Any] = {}
    if path is not None:
        merged.update(load_config(path))
    merged.update(config_from_environment(environ))
    merged.update(overrides)

    names = {f.name for f in dataclasses.fields(config_cls)}
    unknown = sorted(set(merged) - names)
    if unknown:
        logger.debug("Ignoring unknown configuration keys: %s", ", ".join(unknown))
    return config_cls(**{k: v for k, v in merged.items() if k in names})
