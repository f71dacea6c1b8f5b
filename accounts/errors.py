"""Exceptions raised by the account store."""

from __future__ import annotations


class AccountStoreError(Exception):
    """Base class for account store failures."""


class DuplicateEmailError(AccountStoreError, ValueError):
    """A record with the same email (ignoring case) already exists."""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__("User with this email already exists")


class UserNotFoundError(AccountStoreError, LookupError):
    """No record matched the requested id or email."""

    def __init__(self, message: str = "User not found") -> None:
        super().__init__(message)


class AccountDisabledError(AccountStoreError, PermissionError):
    """The matched account has been deactivated."""

    def __init__(self, message: str = "User account is disabled") -> None:
        super().__init__(message)


class InvalidCredentialsError(AccountStoreError, PermissionError):
    def __init__(self, message: str = "Invalid password") -> None:
        super().__init__(message)


class InvalidFormatError(AccountStoreError, ValueError):
    """An import payload could not be interpreted as a list of users."""


class StorageError(AccountStoreError, RuntimeError):
    """The key-value backing failed to read or write a value."""


__all__ = [
    "AccountStoreError",
    "DuplicateEmailError",
    "UserNotFoundError",
    "AccountDisabledError",
    "InvalidCredentialsError",
    "InvalidFormatError",
    "StorageError",
]
