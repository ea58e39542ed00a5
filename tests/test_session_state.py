import unittest

from fakes import FakeUser

from orgsync.state.app_state import AppState, FallbackPhase
from orgsync.state.session_state import Session, derive_display_name


class DisplayNameTests(unittest.TestCase):
    def test_email_local_part(self):
        self.assertEqual(derive_display_name(None, "alice@example.com"), "alice")

    def test_precedence(self):
        self.assertEqual(derive_display_name("Alice A.", "alice@example.com"), "Alice A.")
        self.assertEqual(derive_display_name("  ", "bob@example.com"), "bob")
        self.assertEqual(derive_display_name(None, None), "User")

    def test_session_from_user(self):
        session = Session.from_user(FakeUser(uid="u1", email="alice@example.com"))
        self.assertEqual(session.display_name, "alice")
        self.assertFalse(session.is_anonymous)

    def test_guest(self):
        session = Session.guest("anon-1")
        self.assertTrue(session.is_anonymous)
        self.assertEqual(session.display_name, "Guest User")
        self.assertEqual(session.to_mirror()["displayName"], "Guest User")

    def test_invalid_mirror(self):
        self.assertIsNone(Session.from_mirror(None))
        self.assertIsNone(Session.from_mirror({"email": "x@example.com"}))
        self.assertIsNone(Session.from_mirror(["uid"]))


class AppStateTests(unittest.TestCase):
    def test_fallback_claimed_once(self):
        state = AppState()
        self.assertTrue(state.claim_fallback())
        self.assertEqual(state.fallback, FallbackPhase.SCHEDULED)
        self.assertFalse(state.claim_fallback())

    def test_generation(self):
        state = AppState()
        first = state.begin_delivery()
        second = state.begin_delivery()
        self.assertFalse(state.is_current(first))
        self.assertTrue(state.is_current(second))


if __name__ == "__main__":
    unittest.main()
