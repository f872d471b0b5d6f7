import os
import tempfile
import unittest

from controller.models import VolumeInfo
from shared.errors import BackendError
from shared.file_backend import FileBackend
from shared.interfaces import Credentials

ADMIN = Credentials(id="admin", key="AQA==")


class TestFileBackend(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.backend = FileBackend(self.tmp.name)
        self.volume = VolumeInfo(pool="rbd", monitors="m", vol_name="pvc-1", vol_id="csi-vol-1")

    def tearDown(self):
        self.tmp.cleanup()

    def test_image_lifecycle(self):
        self.assertFalse(self.backend.image_status(self.volume).exists)
        self.backend.create_image(self.volume, 1)

        status = self.backend.image_status(self.volume)
        self.assertTrue(status.exists)
        self.assertEqual(os.path.getsize(status.detail), 1073741824)

        self.backend.delete_image(self.volume)
        self.backend.delete_image(self.volume)
        self.assertFalse(self.backend.image_status(self.volume).exists)

    def test_invalid_size(self):
        with self.assertRaises(BackendError):
            self.backend.create_image(self.volume, 0)

    def test_create_user_is_get_or_create(self):
        first = self.backend.create_user("csi-user-v1", "cephfs", "/csi-volumes/v1", ADMIN)
        second = self.backend.create_user("csi-user-v1", "cephfs", "/csi-volumes/v1", ADMIN)
        self.assertEqual(first, second)
        self.assertEqual(first.id, "csi-user-v1")

        self.backend.delete_user("csi-user-v1", ADMIN)
        self.backend.delete_user("csi-user-v1", ADMIN)
        third = self.backend.create_user("csi-user-v1", "cephfs", "/csi-volumes/v1", ADMIN)
        self.assertNotEqual(third.key, first.key)

    def test_admin_keys_are_checked(self):
        backend = FileBackend(self.tmp.name, admin_keys={"admin": "right"})
        with self.assertRaises(BackendError):
            backend.create_user("csi-user-v1", "cephfs", "/csi-volumes/v1", Credentials("admin", "wrong"))
        backend.create_user("csi-user-v1", "cephfs", "/csi-volumes/v1", Credentials("admin", "right"))


if __name__ == "__main__":
    unittest.main()
