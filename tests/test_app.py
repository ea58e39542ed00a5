import unittest

from fastapi.testclient import TestClient

from fakes import FakeDocumentStore, FakeProvider, FakeSyncCollaborator

from orgsync.app import create_app
from orgsync.bootstrap import build_session_manager
from orgsync.config.settings import Settings
from orgsync.services.storage import SELECTED_ORGANIZATION_KEY, LocalStore


class AppTests(unittest.TestCase):
    def setUp(self):
        self.provider = FakeProvider()
        self.provider.add_account("alice@example.com", "secret1")
        self.store = LocalStore(":memory:")
        cfg = Settings(fallback_login_delay_seconds=60, initial_sync_delay_seconds=60)

        async def factory():
            return await build_session_manager(
                cfg,
                provider_factory=lambda: self.provider,
                document_store=FakeDocumentStore(),
                local_store=self.store,
                sync_collaborator=FakeSyncCollaborator(),
            )

        self.app = create_app(manager_factory=factory)

    def test_health(self):
        with TestClient(self.app) as client:
            self.assertEqual(client.get("/health").json(), {"status": "ok"})

    def test_login_validation_and_errors(self):
        with TestClient(self.app) as client:
            res = client.post("/auth/login", json={"email": " ", "password": "x"})
            self.assertEqual(res.status_code, 400)
            self.assertEqual(res.json()["detail"], "Please enter email and password")

            res = client.post("/auth/login", json={"email": "ghost@example.com", "password": "secret1"})
            self.assertEqual(res.status_code, 401)
            self.assertEqual(res.json()["detail"], "User not found")

    def test_login_session_and_logout(self):
        with TestClient(self.app) as client:
            self.assertFalse(client.get("/session").json()["is_logged_in"])

            res = client.post("/auth/login", json={"email": "alice@example.com", "password": "secret1"})
            self.assertEqual(res.status_code, 200)
            self.assertEqual(res.json()["profile"]["displayName"], "alice")

            body = client.get("/session").json()
            self.assertTrue(body["is_logged_in"])
            self.assertFalse(body["is_anonymous"])
            self.assertEqual(body["profile"]["email"], "alice@example.com")

            self.assertTrue(client.post("/visibility", json={"visible": True}).json()["sync_armed"])

            notifications = client.get("/notifications").json()
            self.assertIn("Welcome alice!", [n["message"] for n in notifications])

            self.assertEqual(client.post("/auth/logout").json(), {"status": "logged_out"})
            self.assertFalse(client.get("/session").json()["is_logged_in"])

    def test_register_validation(self):
        with TestClient(self.app) as client:
            res = client.post("/auth/register", json={"email": "new@example.com", "password": "123"})
            self.assertEqual(res.status_code, 400)
            self.assertEqual(res.json()["detail"], "Password must be at least 6 characters")

            res = client.post("/auth/register", json={"email": "alice@example.com", "password": "secret1"})
            self.assertEqual(res.status_code, 400)
            self.assertEqual(res.json()["detail"], "Email already in use")

            res = client.post("/auth/register", json={"email": "new@example.com", "password": "secret1"})
            self.assertEqual(res.status_code, 200)
            self.assertEqual(res.json()["profile"]["displayName"], "new")

    def test_select_organization(self):
        with TestClient(self.app) as client:
            self.assertEqual(client.put("/organization", json={"organization": " "}).status_code, 400)
            res = client.put("/organization", json={"organization": "org-1"})
            self.assertEqual(res.json(), {"organization": "org-1"})
            self.assertEqual(self.store.get_item(SELECTED_ORGANIZATION_KEY), "org-1")


if __name__ == "__main__":
    unittest.main()
