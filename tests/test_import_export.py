from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from accounts.errors import InvalidFormatError
from accounts.storage import MemoryStorage
from accounts.store import EXPORT_FORMAT_VERSION, AccountStore

FIXED_NOW = datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture()
def store() -> AccountStore:
    return AccountStore(MemoryStorage(), clock=lambda: FIXED_NOW)


def _record(user_id: int, email: str, first_name: str = "Imported") -> dict:
    return {
        "id": user_id,
        "firstName": first_name,
        "lastName": "User",
        "email": email,
        "phone": "+15550001111",
        "password": "Imported123",
        "createdAt": "2024-01-15T08:00:00.000Z",
        "lastLogin": None,
        "isActive": True,
    }


def test_export_wraps_users_with_metadata(store: AccountStore) -> None:
    snapshot = store.export_users()

    assert [item["email"] for item in snapshot["users"]] == ["john@example.com", "jane@example.com"]
    assert snapshot["users"][0]["password"] == "Password123!"
    assert snapshot["metadata"] == {
        "exportDate": FIXED_NOW.isoformat(),
        "totalUsers": 2,
        "version": EXPORT_FORMAT_VERSION,
    }

    rendered = store.export_json()
    assert rendered.startswith("{\n  ")
    assert json.loads(rendered) == snapshot


def test_export_then_replace_import_restores_collection(store: AccountStore) -> None:
    store.create_user(
        first_name="Alice",
        last_name="Wilson",
        email="alice@x.com",
        phone="+15556667777",
        password="Secret123!",
    )
    store.authenticate_user("alice@x.com", "Secret123!")
    exported = store.export_json()
    before_changes = set(store.list_users())

    store.delete_user(1)
    store.update_user(2, first_name="Janet")

    assert store.import_users(exported) == 3
    assert set(store.list_users()) == before_changes


def test_replace_accepts_bare_list(store: AccountStore) -> None:
    count = store.import_users([_record(10, "one@example.com"), _record(11, "two@example.com")])
    assert count == 2
    assert [user.id for user in store.list_users()] == [10, 11]
    assert store.get_user_by_email("john@example.com") is None


def test_replace_rejects_duplicate_ids(store: AccountStore) -> None:
    with pytest.raises(InvalidFormatError):
        store.import_users([_record(5, "a@example.com"), _record(5, "b@example.com")])
    assert len(store.list_users()) == 2


def test_merge_adds_only_new_emails(store: AccountStore) -> None:
    snapshot = {
        "users": [
            _record(1, "newcomer@example.com"),
            _record(2, "JANE@example.com", first_name="Duplicate"),
        ]
    }

    assert store.import_users(snapshot, merge=True) == 1

    users = store.list_users()
    assert len(users) == 3
    added = users[-1]
    assert added.id == 3
    assert added.email == "newcomer@example.com"
    assert store.get_user(2).first_name == "Jane"


def test_merge_assigns_fresh_ids_per_record(store: AccountStore) -> None:
    records = [_record(1, "a@example.com"), _record(1, "b@example.com"), _record(1, "A@example.com")]
    assert store.import_users(json.dumps(records), merge=True) == 2
    assert [user.id for user in store.list_users()] == [1, 2, 3, 4]


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        '{"users": "nope"}',
        '{"metadata": {}}',
        "42",
        [{"firstName": "No", "lastName": "Email"}],
        [_record(1, "x@example.com") | {"createdAt": "yesterday"}],
    ],
)
def test_invalid_payloads_raise_invalid_format(store: AccountStore, payload) -> None:
    before = store.list_users()
    with pytest.raises(InvalidFormatError):
        store.import_users(payload)
    with pytest.raises(InvalidFormatError):
        store.import_users(payload, merge=True)
    assert store.list_users() == before


def test_empty_wrapped_list_replaces_with_nothing(store: AccountStore) -> None:
    assert store.import_users({"users": []}) == 0
    assert store.list_users() == []


def test_accepts_tuple_of_records(store: AccountStore) -> None:
    snapshot = {"users": (_record(4, "tuple@example.com"),)}
    assert store.import_users(snapshot) == 1
    assert store.get_user_by_email("tuple@example.com").id == 4

    assert store.import_users((_record(9, "other@example.com"),), merge=True) == 1
    assert store.get_user_by_email("other@example.com").id == 5
