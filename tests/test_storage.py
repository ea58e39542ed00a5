import os
import tempfile
import unittest

from orgsync.services.storage import FIREBASE_USER_KEY, LocalStore


class LocalStoreTests(unittest.TestCase):
    def test_set_get_remove(self):
        store = LocalStore(":memory:")
        self.assertIsNone(store.get_item("selectedOrganization"))
        store.set_item("selectedOrganization", "org-1")
        store.set_item("selectedOrganization", "org-2")
        self.assertEqual(store.get_item("selectedOrganization"), "org-2")
        store.remove_item("selectedOrganization")
        store.remove_item("selectedOrganization")
        self.assertIsNone(store.get_item("selectedOrganization"))

    def test_corrupt_json_reads_as_none(self):
        store = LocalStore(":memory:")
        store.set_item(FIREBASE_USER_KEY, "{not json")
        self.assertIsNone(store.get_json(FIREBASE_USER_KEY))

    def test_survives_reopen(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "nested", "orgsync.db")
            store = LocalStore(path)
            store.set_json(FIREBASE_USER_KEY, {"uid": "u1", "displayName": "alice"})
            store.close()

            reopened = LocalStore(path)
            self.assertEqual(reopened.get_json(FIREBASE_USER_KEY)["displayName"], "alice")
            reopened.close()


if __name__ == "__main__":
    unittest.main()
