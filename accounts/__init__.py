"""Client-side style user account management over a key-value store."""

from __future__ import annotations

from typing import Any

from .errors import (
    AccountDisabledError,
    AccountStoreError,
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidFormatError,
    StorageError,
    UserNotFoundError,
)
from .models import User
from .storage import FileStorage, KeyValueStorage, MemoryStorage, SQLiteStorage
from .store import AccountStore, UserStats
from .validation import ValidationResult, validate_user_data


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "AccountStore",
    "AccountStoreError",
    "AccountDisabledError",
    "DuplicateEmailError",
    "FileStorage",
    "InvalidCredentialsError",
    "InvalidFormatError",
    "KeyValueStorage",
    "MemoryStorage",
    "SQLiteStorage",
    "StorageError",
    "User",
    "UserNotFoundError",
    "UserStats",
    "ValidationResult",
    "create_app",
    "validate_user_data",
]
