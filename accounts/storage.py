"""Key-value backings for the account store.

The store only ever reads and writes whole JSON documents under a handful of
string keys, so every backend exposes the same three operations: ``get``,
``set`` and ``delete``. Backend failures surface as
:class:`~accounts.errors.StorageError`.
"""
from __future__ import annotations

import os
import re
import sqlite3
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol

from .errors import StorageError

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def _ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _check_key(key: str) -> str:
    if not _KEY_PATTERN.match(key):
        raise ValueError(f"Invalid storage key {key!r}")
    return key


class KeyValueStorage(Protocol):
    """Protocol implemented by every persistence backend."""

    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or ``None`` when the key is absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    def delete(self, key: str) -> None:
        """Remove ``key``. Missing keys are ignored."""
        ...


class MemoryStorage:
    """Process-local storage, mostly useful for tests and demos."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[_check_key(key)] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._values


class FileStorage:
    """Store each key as ``<key>.json`` inside a directory."""

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, key: str) -> Path:
        return self._directory / f"{_check_key(key)}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        temp_path: Optional[Path] = None
        try:
            _ensure_directory(self._directory)
            with tempfile.NamedTemporaryFile(
                mode="w", dir=self._directory, delete=False, encoding="utf-8", suffix=".tmp"
            ) as handle:
                temp_path = Path(handle.name)
                handle.write(value)
            os.replace(temp_path, path)
        except OSError as exc:
            if temp_path is not None and temp_path.exists():
                temp_path.unlink()
            raise StorageError(f"Failed to write {path}: {exc}") from exc

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StorageError(f"Failed to remove {path}: {exc}") from exc


class SQLiteStorage:
    """Persist values in a single SQLite table."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path.parent)
        self._path = path
        self.initialize()

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def initialize(self) -> None:
        """Create the backing table if it does not already exist."""

        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS kv_store (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    )
                    """
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to initialise {self._path}: {exc}") from exc

    def get(self, key: str) -> Optional[str]:
        try:
            with self._connect() as conn:
                row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to read {key!r} from {self._path}: {exc}") from exc
        if row is None:
            return None
        return str(row["value"])

    def set(self, key: str, value: str) -> None:
        _check_key(key)
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO kv_store (key, value) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value
                    """,
                    (key, value),
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to write {key!r} to {self._path}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to remove {key!r} from {self._path}: {exc}") from exc


__all__ = ["KeyValueStorage", "MemoryStorage", "FileStorage", "SQLiteStorage"]
