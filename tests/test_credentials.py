import unittest

from node.credentials import (
    CredentialManager,
    CredentialNotFound,
    CredentialStore,
    get_admin_credentials,
    get_user_credentials,
    get_user_name,
    get_volume_root_path,
)
from node.database import init_node_database
from shared.interfaces import Credentials
from tests.fakes import FakeBackend

ADMIN_SECRETS = {"adminID": "admin", "adminKey": "AQA=="}


class TestSecrets(unittest.TestCase):
    def test_admin_credentials(self):
        self.assertEqual(get_admin_credentials(ADMIN_SECRETS), Credentials(id="admin", key="AQA=="))

    def test_missing_fields(self):
        with self.assertRaisesRegex(ValueError, "adminKey"):
            get_admin_credentials({"adminID": "admin"})
        with self.assertRaisesRegex(ValueError, "userID"):
            get_user_credentials({})

    def test_names(self):
        self.assertEqual(get_user_name("csi-vol-1"), "csi-user-csi-vol-1")
        self.assertEqual(get_volume_root_path("csi-vol-1"), "/csi-volumes/csi-vol-1")


class TestCredentialManager(unittest.TestCase):
    def setUp(self):
        _, SessionLocal = init_node_database("node-test")
        self.store = CredentialStore(SessionLocal)
        self.backend = FakeBackend()
        self.manager = CredentialManager(self.backend, self.store)

    def test_store_upsert(self):
        self.store.store("v1", Credentials("admin", "k1"))
        self.store.store("v1", Credentials("admin", "k2"))
        self.assertEqual(self.store.load("v1", "admin").key, "k2")
        with self.assertRaises(CredentialNotFound):
            self.store.load("v2", "admin")

    def test_dedicated_user_lifecycle(self):
        admin = self.manager.store_admin_credentials("v1", ADMIN_SECRETS)
        user = self.manager.create_dedicated_user("v1", "cephfs", admin)

        self.assertEqual(user.id, "csi-user-v1")
        self.assertEqual(self.backend.users["csi-user-v1"]["path"], "/csi-volumes/v1")
        self.assertEqual(self.store.load("v1", "csi-user-v1"), user)

        self.manager.delete_dedicated_user("v1", "admin")
        self.assertNotIn("csi-user-v1", self.backend.users)

    def test_delete_needs_stored_admin(self):
        with self.assertRaises(CredentialNotFound):
            self.manager.delete_dedicated_user("v1", "admin")

    def test_forget_volume(self):
        self.manager.store_user_credentials("v1", {"userID": "u", "userKey": "k"})
        self.manager.forget_volume("v1")
        with self.assertRaises(CredentialNotFound):
            self.store.load("v1", "u")


if __name__ == "__main__":
    unittest.main()
