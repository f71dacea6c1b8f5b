"""Domain models for the account store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

# Wire names used in the persisted JSON and the export snapshot.
FIELD_NAMES: Dict[str, str] = {
    "id": "id",
    "first_name": "firstName",
    "last_name": "lastName",
    "email": "email",
    "phone": "phone",
    "password": "password",
    "created_at": "createdAt",
    "last_login": "lastLogin",
    "is_active": "isActive",
}


def serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def parse_datetime(value: str) -> datetime:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class User:
    """Represents a user account stored in the account store."""

    id: int
    first_name: str
    last_name: str
    email: str
    phone: str
    password: str
    created_at: datetime
    last_login: Optional[datetime] = None
    is_active: bool = True

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self) -> Dict[str, Any]:
        """Return the camelCase JSON representation of the record."""

        return {
            "id": self.id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "phone": self.phone,
            "password": self.password,
            "createdAt": serialize_datetime(self.created_at),
            "lastLogin": serialize_datetime(self.last_login) if self.last_login else None,
            "isActive": self.is_active,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any], *, user_id: Optional[int] = None) -> "User":
        """Create a :class:`User` from its JSON representation.

        ``user_id`` overrides whatever identifier the payload carries, which lets
        imported records be renumbered before they are stored.
        """

        if not isinstance(data, Mapping):
            raise ValueError("User record must be a JSON object")

        required_fields = {"firstName", "lastName", "email", "password"}
        if user_id is None:
            required_fields.add("id")
        missing = required_fields - data.keys()
        if missing:
            raise ValueError(f"Missing required user fields: {', '.join(sorted(missing))}")

        raw_id = user_id if user_id is not None else data["id"]
        if isinstance(raw_id, bool):
            raise ValueError("User id must be an integer")
        try:
            identifier = int(raw_id)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"User id must be an integer, got {raw_id!r}") from exc

        created_raw = data.get("createdAt")
        last_login_raw = data.get("lastLogin")
        try:
            created_at = (
                parse_datetime(str(created_raw)) if created_raw else datetime.now(timezone.utc)
            )
            last_login = parse_datetime(str(last_login_raw)) if last_login_raw else None
        except ValueError as exc:
            raise ValueError(f"Invalid timestamp on user {identifier}: {exc}") from exc

        return User(
            id=identifier,
            first_name=str(data["firstName"]),
            last_name=str(data["lastName"]),
            email=str(data["email"]),
            phone=str(data.get("phone") or ""),
            password=str(data["password"]),
            created_at=created_at,
            last_login=last_login,
            is_active=bool(data.get("isActive", True)),
        )


__all__ = ["FIELD_NAMES", "User", "parse_datetime", "serialize_datetime"]
