"""Configuration management for the account manager."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .storage import FileStorage, KeyValueStorage, MemoryStorage, SQLiteStorage

STORAGE_BACKENDS = ("memory", "file", "sqlite")
SQLITE_FILENAME = "accounts.sqlite3"

_PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _parse_bool(value: object, *, field: str) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean for {field}: {value!r}")


def _resolve_path(raw: str, base_path: Path | None) -> Path:
    candidate = Path(raw).expanduser()
    if not candidate.is_absolute() and base_path is not None:
        candidate = base_path / candidate
    return candidate.resolve(strict=False)


def default_storage_path() -> Path:
    return (_PROJECT_ROOT / "data").resolve(strict=False)


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the store, the CLI and the HTTP service."""

    storage_backend: str = "file"
    storage_path: Path = default_storage_path()
    seed_defaults: bool = True
    host: str = "127.0.0.1"
    port: int = 8000

    def __post_init__(self) -> None:
        if self.storage_backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"Unknown storage backend {self.storage_backend!r}; "
                f"expected one of: {', '.join(STORAGE_BACKENDS)}"
            )
        if not 0 < self.port < 65536:
            raise ValueError(f"Port must be between 1 and 65535, got {self.port}")

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw dictionary data."""

        storage = data.get("storage") or {}
        if not isinstance(storage, Mapping):
            raise ValueError("The 'storage' configuration section must be a mapping")
        server = data.get("server") or {}
        if not isinstance(server, Mapping):
            raise ValueError("The 'server' configuration section must be a mapping")

        kwargs: Dict[str, object] = {}
        if storage.get("backend") is not None:
            kwargs["storage_backend"] = str(storage["backend"]).strip().lower()
        if storage.get("path") is not None:
            kwargs["storage_path"] = _resolve_path(str(storage["path"]), base_path)
        if storage.get("seed_defaults") is not None:
            kwargs["seed_defaults"] = _parse_bool(storage["seed_defaults"], field="storage.seed_defaults")
        if server.get("host") is not None:
            kwargs["host"] = str(server["host"])
        if server.get("port") is not None:
            kwargs["port"] = int(server["port"])  # type: ignore[arg-type]
        return Settings(**kwargs)  # type: ignore[arg-type]

    def with_env_overrides(self, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        overrides: Dict[str, object] = {}

        backend = env.get("ACCOUNTS_STORAGE_BACKEND")
        if backend:
            overrides["storage_backend"] = backend.strip().lower()
        path = env.get("ACCOUNTS_STORAGE_PATH")
        if path:
            overrides["storage_path"] = _resolve_path(path, None)
        seed = env.get("ACCOUNTS_SEED_DEFAULTS")
        if seed:
            overrides["seed_defaults"] = _parse_bool(seed, field="ACCOUNTS_SEED_DEFAULTS")

        if not overrides:
            return self
        return replace(self, **overrides)  # type: ignore[arg-type]


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (_PROJECT_ROOT / "config" / "accounts.yaml").resolve(strict=False)


def load_settings(
    config_path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from YAML (when present) and apply environment overrides."""

    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("ACCOUNTS_CONFIG"))

    if path.is_file():
        with path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
        if not isinstance(raw, Mapping):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        settings = Settings.from_dict(raw, base_path=path.parent)
    else:
        settings = Settings()

    return settings.with_env_overrides(env)


def open_storage(settings: Settings) -> KeyValueStorage:
    """Build the key-value backing described by ``settings``."""

    if settings.storage_backend == "memory":
        return MemoryStorage()
    if settings.storage_backend == "sqlite":
        path = settings.storage_path
        if path.suffix == "" or path.is_dir():
            path = path / SQLITE_FILENAME
        return SQLiteStorage(path)
    return FileStorage(settings.storage_path)


__all__ = [
    "Settings",
    "STORAGE_BACKENDS",
    "default_storage_path",
    "load_settings",
    "open_storage",
    "resolve_config_path",
]
