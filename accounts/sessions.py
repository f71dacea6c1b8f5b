"""Persistence for the "currently signed in" user snapshot."""

from __future__ import annotations

import json
import logging
from typing import Optional

from .errors import StorageError
from .models import User
from .storage import KeyValueStorage

logger = logging.getLogger("accounts.sessions")

CURRENT_USER_KEY = "currentUser"


class SessionMarker:
    """Store, read, and clear the snapshot of the signed-in user.

    The snapshot is a copy taken at login time. It is never re-derived from the
    user collection, so it goes stale if the record changes afterwards.
    """

    def __init__(self, storage: KeyValueStorage, *, key: str = CURRENT_USER_KEY) -> None:
        self._storage = storage
        self._key = key

    def set(self, user: User) -> None:
        self._storage.set(self._key, json.dumps(user.to_dict()))

    def get(self) -> Optional[User]:
        try:
            raw = self._storage.get(self._key)
            if raw is None:
                return None
            return User.from_dict(json.loads(raw))
        except (StorageError, ValueError) as exc:
            logger.warning("Ignoring unreadable session snapshot: %s", exc)
            return None

    def clear(self) -> None:
        self._storage.delete(self._key)


__all__ = ["CURRENT_USER_KEY", "SessionMarker"]
