"""
Node Service

Stages, publishes, unpublishes and unstages volumes on this node.

Per-volume lifecycle: UNSTAGED -> STAGED -> PUBLISHED -> STAGED -> UNSTAGED.
The state lives in the node cache; mount-point probes are used to reconcile
it with what is actually mounted after a crash or a retried call.
"""

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from node.backend_config import BackendClientConfig, get_config_path
from node.credentials import CredentialManager, CredentialNotFound, get_volume_root_path
from node.models import NodeCapability, VolumeState
from node.node_cache import CacheEntryNotFound, InvalidTransition, NodeCache, NodeCacheEntry
from node.volume_options import NodeVolumeOptions, parse_volume_attributes
from shared.errors import BackendError, FailedPrecondition, Internal, InvalidArgument, MountError
from shared.interfaces import Credentials, Mounter
from shared.keyed_lock import KeyedLock

logger = logging.getLogger(__name__)

# Errors raised by collaborators and local storage while handling a call
COLLABORATOR_ERRORS = (BackendError, MountError, OSError, SQLAlchemyError)


def create_mount_point(path: str) -> None:
    os.makedirs(path, mode=0o750, exist_ok=True)


def remove_mount_point(path: str) -> None:
    """Remove an emptied mount point; failures are logged, not raised."""
    try:
        os.rmdir(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"failed to remove {path}: {e}")


class NodeService:
    """
    Node-side volume lifecycle for a single node.
    """

    def __init__(
        self,
        node_id: str,
        mounter: Mounter,
        credential_manager: CredentialManager,
        cache: NodeCache,
        config_root: Path,
    ):
        """
        Args:
            node_id: This node's identifier
            mounter: Performs mounts on this host
            credential_manager: Creates/deletes dedicated users, stores credentials
            cache: Node credential cache (per-volume state)
            config_root: Folder receiving per-volume backend client configs
        """
        self.node_id = node_id
        self.mounter = mounter
        self.credential_manager = credential_manager
        self.cache = cache
        self.config_root = Path(config_root)
        self._volume_locks = KeyedLock()

    def node_get_capabilities(self) -> List[NodeCapability]:
        return [NodeCapability.STAGE_UNSTAGE_VOLUME]

    def _is_mount_point(self, path: str) -> bool:
        try:
            return self.mounter.is_mount_point(path)
        except (MountError, OSError) as e:
            logger.error(f"stat failed for {path}: {e}")
            raise Internal(str(e))

    # ========================================================================
    # STAGE
    # ========================================================================

    def _get_or_create_user(
        self,
        volume_id: str,
        vol_options: NodeVolumeOptions,
        secrets: Optional[Dict[str, str]],
    ) -> Credentials:
        """
        Resolve the credentials to mount with, recording the cache entry
        before any dedicated user exists so unstage knows what to clean up.
        """
        manager = self.credential_manager

        if vol_options.provision_volume:
            admin = manager.store_admin_credentials(volume_id, secrets)
            vol_options.root_path = get_volume_root_path(volume_id)
            self.cache.insert(volume_id, NodeCacheEntry(vol_options=vol_options, admin_id=admin.id))
            return manager.create_dedicated_user(volume_id, vol_options.pool, admin)

        user = manager.store_user_credentials(volume_id, secrets)
        self.cache.insert(volume_id, NodeCacheEntry(vol_options=vol_options))
        return user

    def node_stage_volume(
        self,
        volume_id: str,
        staging_target_path: str,
        volume_attributes: Optional[Dict[str, str]] = None,
        secrets: Optional[Dict[str, str]] = None,
    ) -> None:
        """
        Mount the volume at its staging path.

        A staging path that is already a mount point is treated as done.
        Failures after the mount point exists are Internal; a dedicated user
        created before a failed mount is cleaned up by unstage.
        """
        if not volume_id:
            raise InvalidArgument("Volume ID missing in request")
        if not staging_target_path:
            raise InvalidArgument("Staging target path missing in request")
        if not secrets:
            raise InvalidArgument("Stage secrets cannot be nil or empty")

        try:
            vol_options = parse_volume_attributes(volume_attributes)
        except ValueError as e:
            logger.error(f"error reading volume options for volume {volume_id}: {e}")
            raise InvalidArgument(str(e))

        with self._volume_locks.hold(volume_id):
            try:
                create_mount_point(staging_target_path)
            except OSError as e:
                logger.error(f"failed to create staging mount point at {staging_target_path} for volume {volume_id}: {e}")
                raise Internal(str(e))

            client_config = BackendClientConfig(monitors=vol_options.monitors, volume_id=volume_id)
            try:
                client_config.write_to_file(self.config_root)
            except OSError as e:
                logger.error(f"failed to write backend config file to {get_config_path(self.config_root, volume_id)} for volume {volume_id}: {e}")
                raise Internal(str(e))

            if self._is_mount_point(staging_target_path):
                if volume_id in self.cache:
                    self._mark_staged(volume_id)
                logger.info(f"volume {volume_id} is already mounted to {staging_target_path}, skipping")
                return

            try:
                creds = self._get_or_create_user(volume_id, vol_options, secrets)
            except (ValueError,) + COLLABORATOR_ERRORS as e:
                logger.error(f"failed to resolve credentials for volume {volume_id}: {e}")
                raise Internal(str(e))

            logger.debug(f"mounting volume {volume_id} with {self.mounter.__class__.__name__}")
            try:
                self.mounter.mount(staging_target_path, creds, vol_options, volume_id)
            except (MountError, OSError) as e:
                logger.error(f"failed to mount volume {volume_id}: {e}")
                raise Internal(str(e))

            self._mark_staged(volume_id)

        logger.info(f"successfully mounted volume {volume_id} to {staging_target_path}")

    def _mark_staged(self, volume_id: str) -> None:
        try:
            self.cache.mark_staged(volume_id)
        except (CacheEntryNotFound, InvalidTransition, SQLAlchemyError) as e:
            logger.error(f"failed to record staged state for volume {volume_id}: {e}")
            raise Internal(str(e))

    # ========================================================================
    # PUBLISH / UNPUBLISH
    # ========================================================================

    def node_publish_volume(
        self,
        volume_id: str,
        staging_target_path: str,
        target_path: str,
        readonly: bool = False,
    ) -> None:
        """Bind-mount the staged volume onto target_path."""
        if not volume_id:
            raise InvalidArgument("Volume ID missing in request")
        if not target_path:
            raise InvalidArgument("Target path missing in request")
        if not staging_target_path:
            raise InvalidArgument("Staging target path missing in request")

        with self._volume_locks.hold(volume_id):
            entry = self.cache.get(volume_id)
            if entry is None or entry.state == VolumeState.UNSTAGED:
                raise FailedPrecondition(f"volume {volume_id} is not staged on node {self.node_id}")

            try:
                create_mount_point(target_path)
            except OSError as e:
                logger.error(f"failed to create mount point at {target_path}: {e}")
                raise Internal(str(e))

            if self._is_mount_point(target_path):
                logger.info(f"volume {volume_id} is already bind-mounted to {target_path}")
            else:
                try:
                    self.mounter.bind_mount(staging_target_path, target_path, readonly)
                except (MountError, OSError) as e:
                    logger.error(f"failed to bind-mount volume {volume_id}: {e}")
                    raise Internal(str(e))

            try:
                self.cache.add_target(volume_id, target_path)
            except (CacheEntryNotFound, InvalidTransition, SQLAlchemyError) as e:
                logger.error(f"failed to record publish of volume {volume_id}: {e}")
                raise Internal(str(e))

        logger.info(f"successfully bind-mounted volume {volume_id} to {target_path}")

    def node_unpublish_volume(self, volume_id: str, target_path: str) -> None:
        """Undo the bind mount and remove the target directory."""
        if not volume_id:
            raise InvalidArgument("Volume ID missing in request")
        if not target_path:
            raise InvalidArgument("Target path missing in request")

        with self._volume_locks.hold(volume_id):
            if self._is_mount_point(target_path):
                try:
                    self.mounter.unmount(target_path)
                except (MountError, OSError) as e:
                    logger.error(f"failed to unmount {target_path}: {e}")
                    raise Internal(str(e))

            remove_mount_point(target_path)

            try:
                self.cache.remove_target(volume_id, target_path)
            except (InvalidTransition, SQLAlchemyError) as e:
                logger.error(f"failed to record unpublish of volume {volume_id}: {e}")
                raise Internal(str(e))

        logger.info(f"successfully unbound volume {volume_id} from {target_path}")

    # ========================================================================
    # UNSTAGE
    # ========================================================================

    def node_unstage_volume(self, volume_id: str, staging_target_path: str) -> None:
        """
        Unmount the staging path and release the volume's credentials.

        If deleting the dedicated user fails, the popped cache entry is put
        back so a retried unstage can finish the cleanup.
        """
        if not volume_id:
            raise InvalidArgument("Volume ID missing in request")
        if not staging_target_path:
            raise InvalidArgument("Staging target path missing in request")

        with self._volume_locks.hold(volume_id):
            current = self.cache.get(volume_id)
            if current is not None and current.targets:
                raise FailedPrecondition(
                    f"volume {volume_id} is still published at {', '.join(sorted(current.targets))}"
                )

            if self._is_mount_point(staging_target_path):
                try:
                    self.mounter.unmount(staging_target_path)
                except (MountError, OSError) as e:
                    logger.error(f"failed to unmount {staging_target_path}: {e}")
                    raise Internal(str(e))

            remove_mount_point(staging_target_path)

            try:
                entry = self.cache.pop(volume_id)
            except (CacheEntryNotFound, SQLAlchemyError) as e:
                logger.error(str(e))
                raise Internal(str(e))

            if entry.vol_options.provision_volume:
                try:
                    self.credential_manager.delete_dedicated_user(volume_id, entry.admin_id or "")
                except (BackendError, CredentialNotFound, SQLAlchemyError) as e:
                    logger.error(f"failed to delete dedicated user for volume {volume_id}: {e}")
                    self._restore_entry(volume_id, entry)
                    raise Internal(str(e))

            self._release_volume_files(volume_id)

        logger.info(f"successfully unmounted volume {volume_id} from {staging_target_path}")

    def _restore_entry(self, volume_id: str, entry: NodeCacheEntry) -> None:
        """
        Put a popped entry back after a failed cleanup. The staging mount is
        already gone, so the entry returns as UNSTAGED with no targets.
        """
        try:
            self.cache.insert(volume_id, replace(entry, state=VolumeState.UNSTAGED, targets=set()))
        except SQLAlchemyError as e:
            logger.error(f"failed to persist restored cache entry for volume {volume_id}: {e}")
            raise Internal(str(e))

    def _release_volume_files(self, volume_id: str) -> None:
        try:
            self.credential_manager.forget_volume(volume_id)
        except SQLAlchemyError as e:
            logger.warning(f"failed to remove stored credentials for volume {volume_id}: {e}")
        try:
            get_config_path(self.config_root, volume_id).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"failed to remove backend config for volume {volume_id}: {e}")
