"""In-memory Backend and Mounter used by the service tests."""

from shared.errors import BackendError, MountError
from shared.interfaces import Backend, Credentials, ImageStatus, Mounter


class FakeBackend(Backend):
    def __init__(self):
        self.images = {}
        self.users = {}
        self.create_image_calls = 0
        self.delete_image_calls = 0
        self.create_user_calls = 0
        self.delete_user_calls = 0
        self.fail_create_image = False
        self.fail_delete_user = False

    def image_status(self, volume, secrets=None):
        return ImageStatus(exists=(volume.pool, volume.vol_name) in self.images)

    def create_image(self, volume, size_gb, secrets=None):
        self.create_image_calls += 1
        if self.fail_create_image:
            raise BackendError("rbd create failed")
        self.images[(volume.pool, volume.vol_name)] = size_gb

    def delete_image(self, volume, secrets=None):
        self.delete_image_calls += 1
        self.images.pop((volume.pool, volume.vol_name), None)

    def create_user(self, user_name, pool, root_path, admin):
        self.create_user_calls += 1
        if user_name not in self.users:
            self.users[user_name] = {"key": f"key-{user_name}", "pool": pool, "path": root_path, "admin": admin.id}
        return Credentials(id=user_name, key=self.users[user_name]["key"])

    def delete_user(self, user_name, admin):
        self.delete_user_calls += 1
        if self.fail_delete_user:
            raise BackendError("auth del failed")
        self.users.pop(user_name, None)


class FakeMounter(Mounter):
    def __init__(self):
        self.mounts = set()
        self.bind_sources = {}
        self.mount_calls = 0
        self.bind_calls = 0
        self.unmount_calls = 0
        self.fail_mount = False
        self.last_creds = None

    def mount(self, path, creds, options, volume_id):
        self.mount_calls += 1
        if self.fail_mount:
            raise MountError("mount failed")
        self.last_creds = creds
        self.mounts.add(path)

    def bind_mount(self, src, dst, read_only):
        self.bind_calls += 1
        self.bind_sources[dst] = (src, read_only)
        self.mounts.add(dst)

    def unmount(self, path):
        self.unmount_calls += 1
        self.mounts.discard(path)
        self.bind_sources.pop(path, None)

    def is_mount_point(self, path):
        return path in self.mounts
