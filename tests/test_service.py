"""End-to-end tests for the account HTTP API."""

from __future__ import annotations

import unittest

from fastapi.testclient import TestClient

from accounts.service import create_app
from accounts.storage import MemoryStorage
from accounts.store import AccountStore


NEW_USER = {
    "first_name": "Alice",
    "last_name": "Wilson",
    "email": "Alice@X.com",
    "phone": "+1 555 666 7777",
    "password": "Secret123!",
}


class AccountServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = AccountStore(MemoryStorage())
        self.client = TestClient(create_app(store=self.store))

    def _login(self, email: str = "john@example.com", password: str = "Password123!"):
        return self.client.post("/login", json={"email": email, "password": password})

    def test_healthcheck(self) -> None:
        response = self.client.get("/healthz")
        self.assertEqual(response.json(), {"status": "ok"})

    def test_register_then_login(self) -> None:
        created = self.client.post("/register", json=NEW_USER)
        self.assertEqual(created.status_code, 201, created.text)
        payload = created.json()
        self.assertEqual(payload["id"], 3)
        self.assertEqual(payload["email"], "alice@x.com")
        self.assertNotIn("password", payload)

        login = self._login("ALICE@x.com", "Secret123!")
        self.assertEqual(login.status_code, 200, login.text)
        self.assertIsNotNone(login.json()["last_login"])

        session = self.client.get("/session")
        self.assertEqual(session.status_code, 200)
        self.assertEqual(session.json()["id"], 3)

    def test_register_reports_validation_errors(self) -> None:
        response = self.client.post("/register", json={**NEW_USER, "email": "bad", "password": "short"})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(
            response.json()["detail"],
            [
                "Please provide a valid email address",
                "Password must be at least 8 characters long",
            ],
        )

    def test_register_duplicate_email_conflicts(self) -> None:
        response = self.client.post("/register", json={**NEW_USER, "email": "JOHN@example.com"})
        self.assertEqual(response.status_code, 409)

    def test_login_errors_are_distinguishable(self) -> None:
        self.assertEqual(self._login("ghost@example.com", "whatever").status_code, 404)
        self.assertEqual(self._login(password="wrong-password").status_code, 401)

        self.store.update_user(1, is_active=False)
        self.assertEqual(self._login().status_code, 403)
        self.assertEqual(self.client.get("/session").status_code, 401)

    def test_logout_clears_session(self) -> None:
        self._login()
        self.assertEqual(self.client.post("/logout").json(), {"status": "signed_out"})
        self.assertEqual(self.client.get("/session").status_code, 401)

    def test_profile_update_requires_session(self) -> None:
        response = self.client.put("/profile", json={"first_name": "Johnny"})
        self.assertEqual(response.status_code, 401)

    def test_profile_update_refreshes_session(self) -> None:
        self._login()
        response = self.client.put(
            "/profile",
            json={"first_name": " Johnny ", "email": "Johnny@Example.com"},
        )
        self.assertEqual(response.status_code, 200, response.text)
        self.assertEqual(response.json()["first_name"], "Johnny")
        self.assertEqual(response.json()["email"], "johnny@example.com")

        self.assertEqual(self.client.get("/session").json()["email"], "johnny@example.com")
        self.assertEqual(self.store.get_user(1).email, "johnny@example.com")

    def test_profile_update_rejects_taken_email_and_bad_fields(self) -> None:
        self._login()
        taken = self.client.put("/profile", json={"email": "JANE@example.com"})
        self.assertEqual(taken.status_code, 409)

        invalid = self.client.put("/profile", json={"last_name": "D", "phone": "abc"})
        self.assertEqual(invalid.status_code, 422)
        self.assertEqual(len(invalid.json()["detail"]), 2)

        same = self.client.put("/profile", json={"email": "john@example.com"})
        self.assertEqual(same.status_code, 200)

    def test_change_password(self) -> None:
        self._login()
        wrong = self.client.post(
            "/profile/password",
            json={"current_password": "nope", "new_password": "BrandNew123"},
        )
        self.assertEqual(wrong.status_code, 401)

        short = self.client.post(
            "/profile/password",
            json={"current_password": "Password123!", "new_password": "short"},
        )
        self.assertEqual(short.status_code, 422)

        changed = self.client.post(
            "/profile/password",
            json={"current_password": "Password123!", "new_password": "BrandNew123"},
        )
        self.assertEqual(changed.status_code, 200, changed.text)
        self.assertEqual(self._login(password="BrandNew123").status_code, 200)

    def test_password_reset(self) -> None:
        missing = self.client.post(
            "/password-reset", json={"email": "ghost@example.com", "new_password": "Whatever123"}
        )
        self.assertEqual(missing.status_code, 404)

        reset = self.client.post(
            "/password-reset", json={"email": "Jane@Example.com", "new_password": "Recovered99"}
        )
        self.assertEqual(reset.status_code, 200)
        self.assertEqual(self._login("jane@example.com", "Recovered99").status_code, 200)
        self.assertEqual(self._login("jane@example.com", "SecurePass456@").status_code, 401)

    def test_admin_user_management(self) -> None:
        listing = self.client.get("/users").json()
        self.assertEqual(listing["total"], 2)

        search = self.client.get("/users", params={"q": "SMITH"}).json()
        self.assertEqual([user["id"] for user in search["users"]], [2])

        self.assertEqual(self.client.get("/users/2").json()["first_name"], "Jane")
        self.assertEqual(self.client.get("/users/9").status_code, 404)

        disabled = self.client.patch("/users/2", json={"is_active": False})
        self.assertEqual(disabled.status_code, 200)
        self.assertFalse(disabled.json()["is_active"])
        self.assertEqual(self.client.patch("/users/9", json={"is_active": True}).status_code, 404)

        stats = self.client.get("/stats").json()
        self.assertEqual(stats["active_users"], 1)
        self.assertEqual(stats["inactive_users"], 1)
        self.assertEqual(stats["recent_registrations"], 2)

        self.assertEqual(self.client.delete("/users/2").status_code, 204)
        self.assertEqual(self.client.delete("/users/2").status_code, 404)

    def test_export_and_import(self) -> None:
        exported = self.client.get("/export").json()
        self.assertEqual(exported["metadata"]["totalUsers"], 2)

        merged = self.client.post(
            "/import",
            params={"merge": "true"},
            json=[
                {
                    "firstName": "New",
                    "lastName": "Person",
                    "email": "new@example.com",
                    "password": "Welcome123",
                },
                {
                    "firstName": "Dup",
                    "lastName": "Person",
                    "email": "john@example.com",
                    "password": "Welcome123",
                },
            ],
        )
        self.assertEqual(merged.status_code, 200, merged.text)
        self.assertEqual(merged.json(), {"imported": 1, "merge": True})

        replaced = self.client.post("/import", json=exported)
        self.assertEqual(replaced.json(), {"imported": 2, "merge": False})
        self.assertEqual(len(self.store.list_users()), 2)

        invalid = self.client.post("/import", json={"users": "nope"})
        self.assertEqual(invalid.status_code, 400)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
