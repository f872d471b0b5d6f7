import threading
import unittest
from unittest import mock

from sqlalchemy.exc import OperationalError

from controller.controller_service import ControllerService
from controller.database import init_controller_database
from controller.metadata_store import VolumeMetadataStore
from controller.models import AccessMode, CapacityRange, ControllerCapability, VolumeCapability
from shared.errors import AlreadyExists, Internal, InvalidArgument
from tests.fakes import FakeBackend

PARAMS = {"pool": "rbd", "monitors": "10.0.0.1:6789"}
RWO = [VolumeCapability(access_mode=AccessMode.SINGLE_NODE_WRITER)]
GIB = 1073741824


class BlockingDeleteBackend(FakeBackend):
    """Backend whose delete_image waits until released."""

    def __init__(self):
        super().__init__()
        self.delete_started = threading.Event()
        self.release_delete = threading.Event()

    def delete_image(self, volume, secrets=None):
        self.delete_started.set()
        self.release_delete.wait(timeout=5)
        super().delete_image(volume, secrets)


class TestControllerService(unittest.TestCase):
    def setUp(self):
        _, SessionLocal = init_controller_database("sqlite://")
        self.store = VolumeMetadataStore(SessionLocal)
        self.backend = FakeBackend()
        self.service = ControllerService(store=self.store, backend=self.backend)

    def create(self, name="pvc-1", size=2 * GIB, params=None):
        return self.service.create_volume(name, RWO, CapacityRange(required_bytes=size), params or PARAMS)

    def test_create_volume(self):
        result = self.create()
        self.assertTrue(result.volume_id.startswith("csi-vol-"))
        self.assertEqual(result.capacity_bytes, 2 * GIB)
        self.assertEqual(result.attributes, PARAMS)
        self.assertEqual(self.backend.images[("rbd", "pvc-1")], 2)

        record = self.store.load(result.volume_id)
        self.assertEqual(record.vol_name, "pvc-1")
        self.assertEqual(self.store.get(result.volume_id).vol_size, 2 * GIB)

    def test_default_size_is_one_gib(self):
        result = self.service.create_volume("pvc-1", RWO, None, PARAMS)
        self.assertEqual(result.capacity_bytes, GIB)
        self.assertEqual(self.backend.images[("rbd", "pvc-1")], 1)

    def test_partial_gib_rounds_up(self):
        self.create(size=GIB + 1)
        self.assertEqual(self.backend.images[("rbd", "pvc-1")], 2)

    def test_repeated_create_is_idempotent(self):
        first = self.create()
        second = self.create()
        self.assertEqual(first.volume_id, second.volume_id)
        self.assertEqual(second.capacity_bytes, 2 * GIB)
        self.assertEqual(self.backend.create_image_calls, 1)

    def test_smaller_request_reuses_volume(self):
        first = self.create(size=2 * GIB)
        second = self.create(size=GIB)
        self.assertEqual(first.volume_id, second.volume_id)
        self.assertEqual(second.capacity_bytes, 2 * GIB)

    def test_larger_request_conflicts(self):
        self.create(size=GIB)
        with self.assertRaises(AlreadyExists):
            self.create(size=2 * GIB)

    def test_concurrent_creates_make_one_image(self):
        results = []

        def worker():
            results.append(self.create().volume_id)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(len(set(results)), 1)
        self.assertEqual(self.backend.create_image_calls, 1)

    def test_existing_image_is_adopted(self):
        self.backend.images[("rbd", "pvc-1")] = 5
        result = self.create()
        self.assertEqual(self.backend.create_image_calls, 0)
        self.assertIsNotNone(self.store.get(result.volume_id))

    def test_invalid_requests(self):
        with self.assertRaises(InvalidArgument):
            self.service.create_volume("", RWO, None, PARAMS)
        with self.assertRaises(InvalidArgument):
            self.service.create_volume("pvc-1", [], None, PARAMS)
        with self.assertRaises(InvalidArgument):
            self.service.create_volume("pvc-1", RWO, None, {"monitors": "m"})
        self.assertEqual(self.backend.create_image_calls, 0)

    def test_unadvertised_capability(self):
        service = ControllerService(self.store, self.backend, capabilities=[ControllerCapability.PUBLISH_UNPUBLISH_VOLUME])
        with self.assertRaises(InvalidArgument):
            service.create_volume("pvc-1", RWO, None, PARAMS)
        with self.assertRaises(InvalidArgument):
            service.delete_volume("csi-vol-1")

    def test_backend_failure_leaves_no_record(self):
        self.backend.fail_create_image = True
        with self.assertRaises(Internal):
            self.create()
        self.assertEqual(self.store.list_volumes(), [])

    def test_persist_failure_is_internal_and_not_indexed(self):
        with mock.patch.object(self.store, "persist", side_effect=OperationalError("INSERT", {}, Exception("disk full"))):
            with self.assertRaises(Internal):
                self.create()
        self.assertIsNone(self.store.get_by_name("pvc-1"))

    def test_delete_volume(self):
        result = self.create()
        self.service.delete_volume(result.volume_id)
        self.assertNotIn(("rbd", "pvc-1"), self.backend.images)
        self.assertIsNone(self.store.get(result.volume_id))

        again = self.create()
        self.assertNotEqual(again.volume_id, result.volume_id)
        self.assertEqual(self.backend.create_image_calls, 2)

    def test_delete_unknown_volume_is_internal(self):
        with self.assertRaises(Internal):
            self.service.delete_volume("csi-vol-unknown")
        self.assertEqual(self.backend.delete_image_calls, 0)

    def test_delete_requires_id(self):
        with self.assertRaises(InvalidArgument):
            self.service.delete_volume("")

    def test_validate_volume_capabilities(self):
        self.assertTrue(self.service.validate_volume_capabilities(RWO).supported)
        mixed = RWO + [VolumeCapability(access_mode=AccessMode.MULTI_NODE_MULTI_WRITER)]
        self.assertFalse(self.service.validate_volume_capabilities(mixed).supported)
        self.assertTrue(self.service.validate_volume_capabilities([]).supported)

    def test_publish_stubs_and_capabilities(self):
        self.assertIsNone(self.service.controller_publish_volume("csi-vol-1", "node-1"))
        self.assertIsNone(self.service.controller_unpublish_volume("csi-vol-1", "node-1"))
        self.assertIn(ControllerCapability.CREATE_DELETE_VOLUME, self.service.controller_get_capabilities())


class TestCreateDuringDelete(unittest.TestCase):
    def setUp(self):
        _, SessionLocal = init_controller_database("sqlite://")
        self.store = VolumeMetadataStore(SessionLocal)
        self.backend = BlockingDeleteBackend()
        self.service = ControllerService(store=self.store, backend=self.backend)

    def test_create_waits_for_delete_of_same_name(self):
        old_id = self.service.create_volume("pvc-1", RWO, CapacityRange(required_bytes=GIB), PARAMS).volume_id

        deleter = threading.Thread(target=self.service.delete_volume, args=(old_id,))
        deleter.start()
        self.assertTrue(self.backend.delete_started.wait(timeout=2))

        created = []
        creator = threading.Thread(
            target=lambda: created.append(
                self.service.create_volume("pvc-1", RWO, CapacityRange(required_bytes=GIB), PARAMS)
            )
        )
        creator.start()
        creator.join(timeout=0.2)
        self.assertTrue(creator.is_alive())

        self.backend.release_delete.set()
        deleter.join(timeout=5)
        creator.join(timeout=5)

        self.assertEqual(len(created), 1)
        new_id = created[0].volume_id
        self.assertNotEqual(new_id, old_id)
        self.assertEqual(self.store.load(new_id).vol_name, "pvc-1")
        self.assertIn(("rbd", "pvc-1"), self.backend.images)
        self.assertEqual(self.backend.create_image_calls, 2)


if __name__ == "__main__":
    unittest.main()
