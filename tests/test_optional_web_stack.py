"""The store must stay usable when FastAPI is not installed."""

from __future__ import annotations

import importlib
import sys

import pytest


@pytest.fixture()
def without_fastapi(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in list(sys.modules):
        if name == "accounts" or name.startswith("accounts."):
            monkeypatch.delitem(sys.modules, name)
    monkeypatch.setitem(sys.modules, "fastapi", None)


@pytest.mark.usefixtures("without_fastapi")
def test_store_works_without_web_dependencies() -> None:
    accounts = importlib.import_module("accounts")

    store = accounts.AccountStore(accounts.MemoryStorage())
    assert [user.id for user in store.list_users()] == [1, 2]
    assert "accounts.service" not in sys.modules


@pytest.mark.usefixtures("without_fastapi")
def test_app_factory_reports_missing_fastapi() -> None:
    accounts = importlib.import_module("accounts")

    with pytest.raises(ImportError):
        accounts.create_app()
