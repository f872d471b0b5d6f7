from __future__ import annotations

import base64
import json
import os
import secrets as token_source
from pathlib import Path
from typing import Dict, Optional

from shared.errors import BackendError
from shared.interfaces import Backend, Credentials, ImageStatus

GIB = 1024 * 1024 * 1024


class FileBackend(Backend):
    """
    Backend keeping images as sparse files and users as JSON records.

    Layout under root:
        pools/<pool>/<image>.img
        users/<user>.json
    """

    def __init__(self, root_path: str | None = None, admin_keys: Optional[Dict[str, str]] = None):
        configured = root_path or os.getenv("VOLPLUGIN_BACKEND_ROOT") or "./plugin_data/backend"
        self.root = Path(configured)
        self.root.mkdir(parents=True, exist_ok=True)
        # When set, admin credentials must match one of these id -> key pairs
        self.admin_keys = dict(admin_keys) if admin_keys else None

    @staticmethod
    def _safe_name(name: str) -> str:
        return "".join(c if (c.isalnum() or c in ("-", "_", ".")) else "_" for c in name)

    def _image_path(self, pool: str, image: str) -> Path:
        return self.root / "pools" / self._safe_name(pool) / f"{self._safe_name(image)}.img"

    def _user_path(self, user_name: str) -> Path:
        return self.root / "users" / f"{self._safe_name(user_name)}.json"

    def _check_admin(self, admin: Credentials) -> None:
        if not admin.id:
            raise BackendError("admin credentials are missing an id")
        if self.admin_keys is not None and self.admin_keys.get(admin.id) != admin.key:
            raise BackendError(f"authentication failed for admin {admin.id}")

    # ========================================================================
    # IMAGES
    # ========================================================================

    def image_status(self, volume, secrets=None) -> ImageStatus:
        path = self._image_path(volume.pool, volume.vol_name)
        if path.exists():
            return ImageStatus(exists=True, detail=str(path.resolve()))
        return ImageStatus(exists=False)

    def create_image(self, volume, size_gb: int, secrets=None) -> None:
        if size_gb <= 0:
            raise BackendError(f"invalid image size {size_gb}GB for {volume.vol_name}")
        path = self._image_path(volume.pool, volume.vol_name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "ab"):
                pass
            with open(path, "r+b") as handle:
                handle.truncate(int(size_gb) * GIB)
        except OSError as e:
            raise BackendError(f"failed to create image {volume.pool}/{volume.vol_name}: {e}") from e

    def delete_image(self, volume, secrets=None) -> None:
        path = self._image_path(volume.pool, volume.vol_name)
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise BackendError(f"failed to delete image {volume.pool}/{volume.vol_name}: {e}") from e

    # ========================================================================
    # USERS
    # ========================================================================

    def create_user(self, user_name: str, pool: str, root_path: str, admin: Credentials) -> Credentials:
        self._check_admin(admin)
        path = self._user_path(user_name)
        try:
            if path.exists():
                payload = json.loads(path.read_text(encoding="utf-8"))
                return Credentials(id=payload["id"], key=payload["key"])

            key = base64.b64encode(token_source.token_bytes(16)).decode("ascii")
            payload = {
                "id": user_name,
                "key": key,
                "caps": {"pool": pool, "path": root_path},
                "created_by": admin.id,
            }
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            path.chmod(0o600)
        except (OSError, ValueError, KeyError) as e:
            raise BackendError(f"failed to create user {user_name}: {e}") from e
        return Credentials(id=user_name, key=key)

    def delete_user(self, user_name: str, admin: Credentials) -> None:
        self._check_admin(admin)
        try:
            self._user_path(user_name).unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise BackendError(f"failed to delete user {user_name}: {e}") from e
