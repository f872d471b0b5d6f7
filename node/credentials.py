"""
Credential Manager

Dynamically provisioned volumes get a dedicated backend user, created with the
admin credentials supplied in the stage secrets and deleted again at unstage.
Pre-provisioned volumes use the user credentials supplied by the caller.

Every credential used for a volume is kept in the node database keyed by
(volume ID, user ID), so retries and unstage can find them again.
"""

import logging
import threading
from typing import Dict, Optional

from sqlalchemy import delete, select

from node.models import CredentialRecord
from shared.interfaces import Backend, Credentials

logger = logging.getLogger(__name__)

ADMIN_ID_KEY = "adminID"
ADMIN_KEY_KEY = "adminKey"
USER_ID_KEY = "userID"
USER_KEY_KEY = "userKey"

USER_NAME_PREFIX = "csi-user-"
VOLUME_ROOT_PREFIX = "/csi-volumes/"


class CredentialNotFound(LookupError):
    pass


def _credentials_from_secrets(secrets: Optional[Dict[str, str]], id_field: str, key_field: str) -> Credentials:
    secrets = secrets or {}
    user_id = secrets.get(id_field)
    if not user_id:
        raise ValueError(f"missing ID field '{id_field}' in secrets")
    key = secrets.get(key_field)
    if not key:
        raise ValueError(f"missing key field '{key_field}' in secrets")
    return Credentials(id=user_id, key=key)


def get_admin_credentials(secrets: Optional[Dict[str, str]]) -> Credentials:
    return _credentials_from_secrets(secrets, ADMIN_ID_KEY, ADMIN_KEY_KEY)


def get_user_credentials(secrets: Optional[Dict[str, str]]) -> Credentials:
    return _credentials_from_secrets(secrets, USER_ID_KEY, USER_KEY_KEY)


def get_user_name(volume_id: str) -> str:
    return USER_NAME_PREFIX + volume_id


def get_volume_root_path(volume_id: str) -> str:
    return VOLUME_ROOT_PREFIX + volume_id


class CredentialStore:
    """Node-local credential records, keyed by (volume ID, user ID)."""

    def __init__(self, session_factory, db_lock: Optional[threading.Lock] = None):
        self.session_factory = session_factory
        self._db_lock = db_lock or threading.Lock()

    def store(self, volume_id: str, creds: Credentials) -> None:
        with self._db_lock:
            db = self.session_factory()
            try:
                record = db.scalars(select(CredentialRecord).where(
                    CredentialRecord.volume_id == volume_id,
                    CredentialRecord.user_id == creds.id,
                )).first()
                if record is None:
                    db.add(CredentialRecord(volume_id=volume_id, user_id=creds.id, key=creds.key))
                else:
                    record.key = creds.key
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    def load(self, volume_id: str, user_id: str) -> Credentials:
        with self._db_lock:
            db = self.session_factory()
            try:
                record = db.scalars(select(CredentialRecord).where(
                    CredentialRecord.volume_id == volume_id,
                    CredentialRecord.user_id == user_id,
                )).first()
                if record is None:
                    raise CredentialNotFound(f"no stored credentials for {user_id} on volume {volume_id}")
                return Credentials(id=record.user_id, key=record.key)
            finally:
                db.close()

    def purge(self, volume_id: str) -> int:
        with self._db_lock:
            db = self.session_factory()
            try:
                result = db.execute(delete(CredentialRecord).where(CredentialRecord.volume_id == volume_id))
                db.commit()
                return result.rowcount or 0
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()


class CredentialManager:
    """
    Creates and deletes dedicated per-volume users and keeps every
    credential it hands out in the CredentialStore.
    """

    def __init__(self, backend: Backend, store: CredentialStore):
        self.backend = backend
        self.store = store

    def store_admin_credentials(self, volume_id: str, secrets: Optional[Dict[str, str]]) -> Credentials:
        """Read admin credentials from the stage secrets and persist them."""
        admin = get_admin_credentials(secrets)
        self.store.store(volume_id, admin)
        return admin

    def create_dedicated_user(self, volume_id: str, pool: str, admin: Credentials) -> Credentials:
        """Create the per-volume user scoped to the volume's pool and root path."""
        user = self.backend.create_user(
            get_user_name(volume_id),
            pool,
            get_volume_root_path(volume_id),
            admin,
        )
        self.store.store(volume_id, user)
        logger.info(f"Created dedicated user {user.id} for volume {volume_id}")
        return user

    def store_user_credentials(self, volume_id: str, secrets: Optional[Dict[str, str]]) -> Credentials:
        """Pass through caller-supplied credentials for a pre-provisioned volume."""
        user = get_user_credentials(secrets)
        self.store.store(volume_id, user)
        return user

    def delete_dedicated_user(self, volume_id: str, admin_id: str) -> None:
        """Delete the per-volume user using the admin credentials stored at stage time."""
        admin = self.store.load(volume_id, admin_id)
        self.backend.delete_user(get_user_name(volume_id), admin)
        logger.info(f"Deleted dedicated user {get_user_name(volume_id)} for volume {volume_id}")

    def forget_volume(self, volume_id: str) -> None:
        removed = self.store.purge(volume_id)
        logger.debug(f"Removed {removed} stored credentials for volume {volume_id}")
