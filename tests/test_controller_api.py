import tempfile
import unittest

from fastapi.testclient import TestClient

from controller.service import build_controller_service, create_app
from tests.fakes import FakeBackend

RWO = [{"access_mode": "SINGLE_NODE_WRITER"}]
PARAMS = {"pool": "rbd", "monitors": "10.0.0.1:6789"}


class TestControllerAPI(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.backend = FakeBackend()
        self.service = build_controller_service(
            plugin_root=self.tmp.name,
            database_url="sqlite://",
            backend=self.backend,
        )
        self.client = TestClient(create_app(self.service))

    def tearDown(self):
        self.tmp.cleanup()

    def create(self, name="pvc-1", size=2147483648):
        return self.client.post("/controller/create_volume", json={
            "name": name,
            "volume_capabilities": RWO,
            "capacity_range": {"required_bytes": size},
            "parameters": PARAMS,
        })

    def test_create_and_delete(self):
        response = self.create()
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["volume_id"].startswith("csi-vol-"))
        self.assertEqual(body["capacity_bytes"], 2147483648)
        self.assertEqual(body["attributes"], PARAMS)

        self.assertEqual(self.client.get("/").json()["volume_count"], 1)

        response = self.client.post("/controller/delete_volume", json={"volume_id": body["volume_id"]})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get("/").json()["volume_count"], 0)

    def test_conflicting_size(self):
        self.create(size=1073741824)
        response = self.create(size=2147483648)
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["detail"]["code"], "AlreadyExists")

    def test_invalid_argument(self):
        response = self.client.post("/controller/create_volume", json={"name": "", "volume_capabilities": RWO})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"]["code"], "InvalidArgument")

    def test_delete_unknown_is_internal(self):
        response = self.client.post("/controller/delete_volume", json={"volume_id": "csi-vol-missing"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"]["code"], "Internal")

    def test_validate_capabilities(self):
        response = self.client.post("/controller/validate_volume_capabilities", json={
            "volume_id": "csi-vol-1",
            "volume_capabilities": [{"access_mode": "MULTI_NODE_MULTI_WRITER"}],
        })
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()["supported"])

        response = self.client.post("/controller/validate_volume_capabilities", json={"volume_id": "csi-vol-1"})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["supported"])

    def test_publish_noops_and_capabilities(self):
        payload = {"volume_id": "csi-vol-1", "node_id": "node-1"}
        self.assertEqual(self.client.post("/controller/publish_volume", json=payload).status_code, 200)
        self.assertEqual(self.client.post("/controller/unpublish_volume", json=payload).status_code, 200)
        capabilities = self.client.get("/controller/capabilities").json()["capabilities"]
        self.assertEqual(capabilities, ["CREATE_DELETE_VOLUME", "PUBLISH_UNPUBLISH_VOLUME"])


if __name__ == "__main__":
    unittest.main()
