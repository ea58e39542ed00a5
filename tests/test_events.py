import unittest

from orgsync.core.events import AuthStateBroadcaster, AuthStateChange
from orgsync.services.notifier import Notifier
from orgsync.state.session_state import Session


SIGNED_IN = AuthStateChange(
    session=Session(uid="u1", email="alice@example.com", display_name="alice"),
    is_logged_in=True,
    profile={"uid": "u1"},
)


class BroadcasterTests(unittest.IsolatedAsyncioTestCase):
    async def test_sync_and_async_listeners(self):
        broadcaster = AuthStateBroadcaster()
        seen = []

        async def async_listener(change):
            seen.append(("async", change.is_logged_in))

        broadcaster.subscribe(lambda change: seen.append(("sync", change.is_logged_in)))
        broadcaster.subscribe(async_listener)
        await broadcaster.publish(SIGNED_IN)
        self.assertEqual(seen, [("sync", True), ("async", True)])

    async def test_unsubscribe(self):
        broadcaster = AuthStateBroadcaster()
        seen = []
        unsubscribe = broadcaster.subscribe(seen.append)
        unsubscribe()
        unsubscribe()
        await broadcaster.publish(SIGNED_IN)
        self.assertEqual(seen, [])


class NotifierTests(unittest.TestCase):
    def test_login_suggestion_not_duplicated_while_pending(self):
        notifier = Notifier()
        notifier.suggest_login()
        notifier.suggest_login()
        pending = notifier.drain()
        self.assertEqual([n.kind for n in pending], [Notifier.LOGIN_SUGGESTION])
        notifier.suggest_login()
        self.assertTrue(notifier.has_pending(Notifier.LOGIN_SUGGESTION))

    def test_unknown_severity_falls_back_to_info(self):
        notifier = Notifier()
        notifier.notify("hello", "loud")
        self.assertEqual(notifier.drain()[0].severity, "info")
        self.assertEqual(notifier.drain(), [])


if __name__ == "__main__":
    unittest.main()
