"""Field validation for registration and profile forms."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from .models import FIELD_NAMES

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[1-9]\d{0,15}$")
_PHONE_SEPARATORS = re.compile(r"[\s\-()]")

MIN_NAME_LENGTH = 2
MIN_PASSWORD_LENGTH = 8

FIRST_NAME_ERROR = "First name must be at least 2 characters long"
LAST_NAME_ERROR = "Last name must be at least 2 characters long"
EMAIL_ERROR = "Please provide a valid email address"
PHONE_ERROR = "Please provide a valid phone number"
PASSWORD_ERROR = "Password must be at least 8 characters long"


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)


def _field_values(data: Mapping[str, Any]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for name, wire in FIELD_NAMES.items():
        if name in data:
            values[name] = data[name]
        elif wire in data:
            values[name] = data[wire]
    return values


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def is_valid_name(value: Any) -> bool:
    return len(_text(value).strip()) >= MIN_NAME_LENGTH


def is_valid_email(value: Any) -> bool:
    return bool(EMAIL_PATTERN.fullmatch(_text(value)))


def normalize_phone(value: str) -> str:
    """Strip the spaces, dashes and parentheses people type into phone numbers."""

    return _PHONE_SEPARATORS.sub("", value)


def is_valid_phone(value: Any) -> bool:
    text = _text(value)
    if not text:
        return False
    return bool(PHONE_PATTERN.fullmatch(normalize_phone(text)))


def is_valid_password(value: Any) -> bool:
    return len(_text(value)) >= MIN_PASSWORD_LENGTH


def validate_user_data(data: Mapping[str, Any]) -> ValidationResult:
    """Check a registration payload and list every violated rule.

    ``data`` may use the record attribute names (``first_name``) or the wire
    names (``firstName``). Missing keys count as violations.
    Messages are returned in field order so forms can display them as-is.
    """

    values = _field_values(data)
    errors: List[str] = []

    if not is_valid_name(values.get("first_name")):
        errors.append(FIRST_NAME_ERROR)
    if not is_valid_name(values.get("last_name")):
        errors.append(LAST_NAME_ERROR)
    if not is_valid_email(values.get("email")):
        errors.append(EMAIL_ERROR)
    if not is_valid_phone(values.get("phone")):
        errors.append(PHONE_ERROR)
    if not is_valid_password(values.get("password")):
        errors.append(PASSWORD_ERROR)

    return ValidationResult(is_valid=not errors, errors=errors)


__all__ = [
    "ValidationResult",
    "validate_user_data",
    "is_valid_name",
    "is_valid_email",
    "is_valid_phone",
    "is_valid_password",
    "normalize_phone",
    "MIN_PASSWORD_LENGTH",
    "EMAIL_ERROR",
    "FIRST_NAME_ERROR",
    "LAST_NAME_ERROR",
    "PASSWORD_ERROR",
    "PHONE_ERROR",
]
