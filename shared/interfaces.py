"""
Collaborator interfaces consumed by the controller and node services.

Backend: creates and removes images and per-volume users on the storage cluster.
Mounter: performs mounts on the local host.

Implementations raise BackendError / MountError; the services translate those
into Internal protocol errors.
"""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Optional

if TYPE_CHECKING:
    from controller.models import VolumeInfo
    from node.volume_options import NodeVolumeOptions


@dataclass
class Credentials:
    id: str
    key: str


@dataclass
class ImageStatus:
    exists: bool
    detail: str = ""


class Backend(abc.ABC):

    @abc.abstractmethod
    def image_status(self, volume: VolumeInfo, secrets: Optional[Dict[str, str]] = None) -> ImageStatus:
        """Report whether the image backing ``volume`` is present."""

    @abc.abstractmethod
    def create_image(self, volume: VolumeInfo, size_gb: int, secrets: Optional[Dict[str, str]] = None) -> None:
        pass

    @abc.abstractmethod
    def delete_image(self, volume: VolumeInfo, secrets: Optional[Dict[str, str]] = None) -> None:
        pass

    @abc.abstractmethod
    def create_user(self, user_name: str, pool: str, root_path: str, admin: Credentials) -> Credentials:
        """Create (or fetch, if present) a principal scoped to ``pool`` and ``root_path``."""

    @abc.abstractmethod
    def delete_user(self, user_name: str, admin: Credentials) -> None:
        pass


class Mounter(abc.ABC):

    @abc.abstractmethod
    def mount(self, path: str, creds: Credentials, options: NodeVolumeOptions, volume_id: str) -> None:
        pass

    @abc.abstractmethod
    def bind_mount(self, src: str, dst: str, read_only: bool) -> None:
        pass

    @abc.abstractmethod
    def unmount(self, path: str) -> None:
        pass

    @abc.abstractmethod
    def is_mount_point(self, path: str) -> bool:
        pass
