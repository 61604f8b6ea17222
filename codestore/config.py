"""Configuration loading for codestore (codestore.yml + environment)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import StorageRootError

DEFAULT_CONFIG_NAME = "codestore.yml"
DEFAULT_MAX_UPLOAD_BYTES = 100 << 20
DEFAULT_CHUNK_SIZE = 64 * 1024


class ConfigError(RuntimeError):
    """Raised when the configuration file or environment cannot be parsed."""


@dataclass
class ServiceConfig:
    """Process-wide settings fixed at startup."""

    storage_root: Path = field(default_factory=lambda: Path("./storage"))
    host: str = "0.0.0.0"
    port: int = 8081
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    max_files: int = 1000
    chunk_size: int = DEFAULT_CHUNK_SIZE


_ENV_OVERRIDES = {
    "STORAGE_ROOT": "storage_root",
    "HOST": "host",
    "PORT": "port",
    "CODESTORE_MAX_UPLOAD_BYTES": "max_upload_bytes",
}

_INT_FIELDS = {"port", "max_upload_bytes", "max_files", "chunk_size"}


def load_config(
    config_path: Path | None = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ServiceConfig:
    """Load configuration from an optional YAML file, then the environment."""
    env = os.environ if environ is None else environ
    values: Dict[str, Any] = {}

    config_file = _resolve_config_path(config_path)
    if config_file is not None and config_file.exists():
        values.update(_read_config(config_file))
        root = values.get("storage_root")
        if isinstance(root, str) and not Path(root).is_absolute():
            values["storage_root"] = str(config_file.parent / root)

    for variable, key in _ENV_OVERRIDES.items():
        raw = env.get(variable)
        if raw:
            values[key] = raw

    config = ServiceConfig()
    for key, value in values.items():
        if key == "storage_root":
            config.storage_root = Path(str(value)).expanduser()
        elif key == "host":
            config.host = str(value)
        elif key in _INT_FIELDS:
            setattr(config, key, _as_positive_int(key, value))
        else:
            raise ConfigError(f"Unknown configuration key: {key}")
    return config


def ensure_storage_root(config: ServiceConfig) -> Path:
    """Create the storage root if needed and return its resolved path."""
    root = config.storage_root.expanduser()
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StorageRootError(
            f"Failed to create storage directory {root}: {exc}"
        ) from exc
    if not root.is_dir():
        raise StorageRootError(f"Storage root is not a directory: {root}")
    return root.resolve()


def _resolve_config_path(config_path: Path | None) -> Path | None:
    if config_path is None:
        return None
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / DEFAULT_CONFIG_NAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return loaded


def _as_positive_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be an integer, got {value!r}")
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer, got {value!r}") from exc
    if number <= 0:
        raise ConfigError(f"{key} must be positive, got {number}")
    return number


__all__ = [
    "ConfigError",
    "ServiceConfig",
    "ensure_storage_root",
    "load_config",
]
