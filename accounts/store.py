"""Account store: user records and the signed-in user snapshot."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .errors import (
    AccountDisabledError,
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidFormatError,
    UserNotFoundError,
    StorageError,
)
from .models import FIELD_NAMES, User, parse_datetime, serialize_datetime
from .sessions import SessionMarker
from .storage import KeyValueStorage
from .validation import ValidationResult, validate_user_data

logger = logging.getLogger("accounts.store")

USERS_KEY = "users"
EXPORT_FORMAT_VERSION = "1.0"
RECENT_REGISTRATION_WINDOW = timedelta(days=7)

_WIRE_TO_FIELD = {wire: name for name, wire in FIELD_NAMES.items()}
_UPDATABLE_FIELDS = frozenset(FIELD_NAMES) - {"id"}

Snapshot = Union[str, bytes, Mapping[str, Any], Sequence[Any]]


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class UserStats:
    total_users: int
    active_users: int
    inactive_users: int
    users_with_login: int
    recent_registrations: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "totalUsers": self.total_users,
            "activeUsers": self.active_users,
            "inactiveUsers": self.inactive_users,
            "usersWithLogin": self.users_with_login,
            "recentRegistrations": self.recent_registrations,
        }


class AccountStore:
    """Owns the user collection and the current-session snapshot.

    Records are kept in an insertion-ordered ``id -> User`` map with a
    lowercase email index. Every mutation rewrites the whole collection to the
    backing under the ``users`` key; the in-memory map only changes once that
    write succeeds.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        seed_defaults: bool = True,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._storage = storage
        self._clock = clock or _current_timestamp
        self._session = SessionMarker(storage)
        self._users: Dict[int, User] = {}
        self._email_index: Dict[str, int] = {}
        self.initialize(seed_defaults=seed_defaults)

    def initialize(self, *, seed_defaults: bool = True) -> None:
        """Load the collection, writing the demo accounts when none exists yet."""

        try:
            missing = self._storage.get(USERS_KEY) is None
        except StorageError as exc:
            logger.warning("Could not check for an existing user collection: %s", exc)
            missing = False

        if missing and seed_defaults:
            self._commit(self._default_users())
            return
        self.reload()

    def reload(self) -> None:
        """Re-read the collection from the backing."""

        self._set_collection(self._load())

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list_users(self) -> List[User]:
        return list(self._users.values())

    def get_user(self, user_id: Any) -> Optional[User]:
        identifier = _coerce_id(user_id)
        if identifier is None:
            return None
        return self._users.get(identifier)

    def get_user_by_email(self, email: str) -> Optional[User]:
        user_id = self._email_index.get(email.lower())
        if user_id is None:
            return None
        return self._users.get(user_id)

    def search_users(self, query: str) -> List[User]:
        """Return users whose first name, last name or email contains ``query``."""

        term = query.lower()
        return [
            user
            for user in self._users.values()
            if term in user.first_name.lower()
            or term in user.last_name.lower()
            or term in user.email.lower()
        ]

    def get_stats(self) -> UserStats:
        users = self.list_users()
        active = sum(1 for user in users if user.is_active)
        with_login = sum(1 for user in users if user.last_login is not None)
        cutoff = self._clock() - RECENT_REGISTRATION_WINDOW
        recent = sum(1 for user in users if user.created_at > cutoff)
        return UserStats(
            total_users=len(users),
            active_users=active,
            inactive_users=len(users) - active,
            users_with_login=with_login,
            recent_registrations=recent,
        )

    @staticmethod
    def validate(data: Mapping[str, Any]) -> ValidationResult:
        return validate_user_data(data)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def create_user(
        self,
        *,
        first_name: str,
        last_name: str,
        email: str,
        phone: str,
        password: str,
    ) -> User:
        """Append a new active user and return it."""

        if self.get_user_by_email(email) is not None:
            raise DuplicateEmailError(email)

        user = User(
            id=self._next_id(self._users.values()),
            first_name=first_name,
            last_name=last_name,
            email=email.lower(),
            phone=phone,
            password=password,
            created_at=self._clock(),
            last_login=None,
            is_active=True,
        )
        self._commit([*self._users.values(), user])
        return user

    def update_user(self, user_id: Any, **changes: Any) -> User:
        """Overwrite the given fields on an existing user.

        Field names may be given as attributes (``first_name``) or in their
        wire form (``firstName``). Email uniqueness is not re-checked here;
        callers changing an email must check it first.
        """

        fields = self._normalise_changes(changes)
        user = self._require(user_id)
        updated = replace(user, **fields)
        self._commit([updated if item.id == user.id else item for item in self._users.values()])
        return updated

    def delete_user(self, user_id: Any) -> None:
        user = self._require(user_id)
        self._commit([item for item in self._users.values() if item.id != user.id])

    def authenticate_user(self, email: str, password: str) -> User:
        """Check credentials and stamp the last-login time.

        Disabled accounts are rejected before the password is compared.
        """

        user = self.get_user_by_email(email)
        if user is None:
            raise UserNotFoundError()
        if not user.is_active:
            raise AccountDisabledError()
        if user.password != password:
            raise InvalidCredentialsError()
        return self.update_user(user.id, last_login=self._clock())

    # ------------------------------------------------------------------
    # Session marker
    # ------------------------------------------------------------------
    def set_current_user(self, user: User) -> None:
        self._session.set(user)

    def get_current_user(self) -> Optional[User]:
        return self._session.get()

    def logout(self) -> None:
        self._session.clear()

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------
    def export_users(self) -> Dict[str, Any]:
        users = self.list_users()
        return {
            "users": [user.to_dict() for user in users],
            "metadata": {
                "exportDate": serialize_datetime(self._clock()),
                "totalUsers": len(users),
                "version": EXPORT_FORMAT_VERSION,
            },
        }

    def export_json(self) -> str:
        return json.dumps(self.export_users(), indent=2)

    def import_users(self, snapshot: Snapshot, *, merge: bool = False) -> int:
        """Load users from an export snapshot or a bare list of records.

        In replace mode the snapshot becomes the whole collection and its size
        is returned. In merge mode only records with an unseen email are
        appended, each renumbered with the next free id, and the number added
        is returned.
        """

        records = self._parse_snapshot(snapshot)
        if merge:
            return self._merge_records(records)

        users: List[User] = []
        seen_ids = set()
        for record in records:
            user = self._record_to_user(record)
            if user.id in seen_ids:
                raise InvalidFormatError(f"Failed to import users: duplicate id {user.id}")
            seen_ids.add(user.id)
            users.append(user)

        self._commit(users)
        return len(users)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _merge_records(self, records: List[Any]) -> int:
        users = self.list_users()
        known_emails = set(self._email_index)
        added = 0
        for record in records:
            email = record.get("email") if isinstance(record, Mapping) else None
            if not isinstance(email, str):
                raise InvalidFormatError("Failed to import users: record without an email")
            if email.lower() in known_emails:
                continue
            user = self._record_to_user(record, user_id=self._next_id(users))
            users.append(user)
            known_emails.add(email.lower())
            added += 1

        if added:
            self._commit(users)
        return added

    @staticmethod
    def _parse_snapshot(snapshot: Snapshot) -> List[Any]:
        data: Any = snapshot
        if isinstance(snapshot, (str, bytes)):
            try:
                data = json.loads(snapshot)
            except ValueError as exc:
                raise InvalidFormatError(f"Failed to import users: {exc}") from exc

        if isinstance(data, Mapping) and data.get("users") is not None:
            data = data["users"]
        if isinstance(data, (str, bytes)) or not isinstance(data, Sequence):
            raise InvalidFormatError("Failed to import users: Invalid data format")
        return list(data)

    @staticmethod
    def _record_to_user(record: Any, *, user_id: Optional[int] = None) -> User:
        try:
            return User.from_dict(record, user_id=user_id)
        except ValueError as exc:
            raise InvalidFormatError(f"Failed to import users: {exc}") from exc

    @staticmethod
    def _next_id(users: Iterable[User]) -> int:
        return max((user.id for user in users), default=0) + 1

    def _require(self, user_id: Any) -> User:
        user = self.get_user(user_id)
        if user is None:
            raise UserNotFoundError()
        return user

    @staticmethod
    def _normalise_changes(changes: Mapping[str, Any]) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        for key, value in changes.items():
            name = _WIRE_TO_FIELD.get(key, key)
            if name == "id":
                raise ValueError("User id cannot be changed")
            if name not in _UPDATABLE_FIELDS:
                raise ValueError(f"Unknown user field {key!r}")
            if name in {"created_at", "last_login"} and isinstance(value, str):
                value = parse_datetime(value)
            fields[name] = value
        return fields

    def _default_users(self) -> List[User]:
        now = self._clock()
        return [
            User(
                id=1,
                first_name="John",
                last_name="Doe",
                email="john@example.com",
                phone="+1234567890",
                password="Password123!",
                created_at=now,
            ),
            User(
                id=2,
                first_name="Jane",
                last_name="Smith",
                email="jane@example.com",
                phone="+0987654321",
                password="SecurePass456@",
                created_at=now,
            ),
        ]

    def _load(self) -> List[User]:
        try:
            raw = self._storage.get(USERS_KEY)
            if raw is None:
                return []
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError("stored users value is not a list")
            users = [User.from_dict(item) for item in data]
        except (StorageError, ValueError) as exc:
            logger.warning("Error reading users data, treating collection as empty: %s", exc)
            return []

        unique: Dict[int, User] = {}
        for user in users:
            if user.id in unique:
                logger.warning("Skipping stored user with duplicate id %s", user.id)
                continue
            unique[user.id] = user
        return list(unique.values())

    def _commit(self, users: List[User]) -> None:
        payload = json.dumps([user.to_dict() for user in users])
        self._storage.set(USERS_KEY, payload)
        self._set_collection(users)

    def _set_collection(self, users: Iterable[User]) -> None:
        self._users = {user.id: user for user in users}
        index: Dict[str, int] = {}
        for user in self._users.values():
            index.setdefault(user.email.lower(), user.id)
        self._email_index = index


__all__ = ["AccountStore", "UserStats", "USERS_KEY", "EXPORT_FORMAT_VERSION"]
