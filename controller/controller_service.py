"""
Controller Service

Provisions and deprovisions backend images. Owns the mapping from a
request name to a generated volume ID and makes image creation happen at
most once per name.
"""

import logging
import math
import uuid
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from controller.metadata_store import VolumeMetadataStore, VolumeRecordNotFound
from controller.models import (
    AccessMode,
    CapacityRange,
    ControllerCapability,
    CreateVolumeResult,
    ValidationResult,
    VolumeCapability,
)
from controller.volume_options import parse_volume_parameters
from shared.config import ONE_GIB
from shared.errors import AlreadyExists, BackendError, Internal, InvalidArgument
from shared.interfaces import Backend
from shared.keyed_lock import KeyedLock

logger = logging.getLogger(__name__)

VOLUME_ID_PREFIX = "csi-vol-"

DEFAULT_CAPABILITIES = (
    ControllerCapability.CREATE_DELETE_VOLUME,
    ControllerCapability.PUBLISH_UNPUBLISH_VOLUME,
)


class ControllerService:
    """
    Handles CreateVolume / DeleteVolume / ValidateVolumeCapabilities and the
    no-op publish RPCs.
    """

    def __init__(
        self,
        store: VolumeMetadataStore,
        backend: Backend,
        capabilities=DEFAULT_CAPABILITIES,
    ):
        """
        Args:
            store: Metadata store (durable records + index)
            backend: Storage backend used for image create/delete/status
            capabilities: Controller RPC capabilities to advertise
        """
        self.store = store
        self.backend = backend
        self.capabilities = list(capabilities)
        self._name_locks = KeyedLock()
        self._id_locks = KeyedLock()

    def validate_controller_request(self, capability: ControllerCapability) -> None:
        if capability not in self.capabilities:
            raise InvalidArgument(f"unsupported capability {capability.value}")

    def controller_get_capabilities(self) -> List[ControllerCapability]:
        return list(self.capabilities)

    # ========================================================================
    # VOLUME CREATION
    # ========================================================================

    def create_volume(
        self,
        name: str,
        volume_capabilities: List[VolumeCapability],
        capacity_range: Optional[CapacityRange] = None,
        parameters: Optional[Dict[str, str]] = None,
        secrets: Optional[Dict[str, str]] = None,
    ) -> CreateVolumeResult:
        """
        Create a volume, or return the existing one for a repeated name.

        Steps:
        1. Validate capability, name and volume capabilities
        2. Return the existing volume when the name is known and large enough
        3. Parse backend parameters and generate the volume ID
        4. Create the backend image unless it already exists
        5. Persist the record, then add it to the index

        Raises:
            InvalidArgument: malformed request or unparseable parameters
            AlreadyExists: name in use by a smaller volume
            Internal: backend or metadata failure
        """
        try:
            self.validate_controller_request(ControllerCapability.CREATE_DELETE_VOLUME)
        except InvalidArgument:
            logger.error(f"invalid create volume req: name={name!r}")
            raise
        if not name:
            raise InvalidArgument("Volume Name cannot be empty")
        if not volume_capabilities:
            raise InvalidArgument("Volume Capabilities cannot be empty")

        required_bytes = capacity_range.required_bytes if capacity_range else 0

        with self._name_locks.hold(name):
            existing = self.store.get_by_name(name)
            if existing is not None:
                if existing.vol_size >= required_bytes:
                    logger.info(f"Volume {name} already exists as {existing.vol_id}, reusing it")
                    return CreateVolumeResult(
                        volume_id=existing.vol_id,
                        capacity_bytes=existing.vol_size,
                        attributes=dict(parameters or {}),
                    )
                raise AlreadyExists(
                    f"Volume with the same name: {name} but with different size already exist"
                )

            try:
                volume = parse_volume_parameters(parameters)
            except ValueError as e:
                logger.error(f"failed to get volume options: {e}")
                raise InvalidArgument(str(e))

            # Volume name and volume ID must differ
            unique_id = str(uuid.uuid1())
            volume.vol_name = name
            volume.vol_id = VOLUME_ID_PREFIX + unique_id
            volume.vol_size = required_bytes if required_bytes > 0 else ONE_GIB
            size_gb = math.ceil(volume.vol_size / ONE_GIB)

            try:
                status = self.backend.image_status(volume, secrets)
                if not status.exists:
                    self.backend.create_image(volume, size_gb, secrets)
                    logger.debug(f"created image {volume.pool}/{volume.vol_name} ({size_gb}GB)")
                else:
                    logger.info(f"image {volume.pool}/{volume.vol_name} already present, adopting it")
            except BackendError as e:
                logger.error(f"failed to create volume {name}: {e}")
                raise Internal(str(e))

            try:
                self.store.persist(volume)
            except SQLAlchemyError as e:
                logger.error(f"failed to store volume info for {volume.vol_id}: {e}")
                raise Internal(str(e))
            self.store.index_put(volume)

        logger.info(f"Created volume {name} as {volume.vol_id} ({volume.vol_size} bytes)")
        return CreateVolumeResult(
            volume_id=volume.vol_id,
            capacity_bytes=volume.vol_size,
            attributes=dict(parameters or {}),
        )

    # ========================================================================
    # VOLUME DELETION
    # ========================================================================

    def delete_volume(self, volume_id: str, secrets: Optional[Dict[str, str]] = None) -> None:
        """
        Delete the backend image, then the record, then the index entry.

        The image is always deleted; there is no retention policy. The
        deletion runs under the volume name lock as well, so a CreateVolume
        for the same name cannot return the ID being deleted.
        """
        try:
            self.validate_controller_request(ControllerCapability.CREATE_DELETE_VOLUME)
        except InvalidArgument:
            logger.error(f"invalid delete volume req: volume_id={volume_id!r}")
            raise
        if not volume_id:
            raise InvalidArgument("Volume ID cannot be empty")

        with self._id_locks.hold(volume_id):
            try:
                volume = self.store.load(volume_id)
            except (VolumeRecordNotFound, SQLAlchemyError) as e:
                logger.error(f"failed to load volume info for volume {volume_id}: {e}")
                raise Internal(str(e))

            # Creates for the same name wait until the index entry is gone
            with self._name_locks.hold(volume.vol_name):
                logger.debug(f"deleting volume {volume.vol_name}")
                try:
                    self.backend.delete_image(volume, secrets)
                except BackendError as e:
                    logger.error(f"failed to delete image {volume.pool}/{volume.vol_name}: {e}")
                    raise Internal(str(e))

                try:
                    self.store.delete(volume_id)
                except SQLAlchemyError as e:
                    logger.error(f"failed to delete volume info for volume {volume_id}: {e}")
                    raise Internal(str(e))
                self.store.index_remove(volume_id)

        logger.info(f"Deleted volume {volume_id} ({volume.pool}/{volume.vol_name})")

    # ========================================================================
    # CAPABILITIES & PUBLISH STUBS
    # ========================================================================

    def validate_volume_capabilities(self, volume_capabilities: List[VolumeCapability]) -> ValidationResult:
        """An empty list is vacuously supported."""
        for capability in volume_capabilities or []:
            if capability.access_mode != AccessMode.SINGLE_NODE_WRITER:
                return ValidationResult(supported=False, message="")
        return ValidationResult(supported=True, message="")

    def controller_publish_volume(self, volume_id: str, node_id: str = "") -> None:
        return None

    def controller_unpublish_volume(self, volume_id: str, node_id: str = "") -> None:
        return None
