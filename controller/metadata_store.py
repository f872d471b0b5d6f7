"""
Volume Metadata Store

Durable per-volume provisioning facts (one VolumeRecord per volume ID) plus an
in-memory index mirroring them for lookups during the process lifetime.

The durable side is written first; the index only changes after the database
commit succeeds.
"""

import logging
import threading
from typing import Dict, List, Optional

from sqlalchemy import select

from controller.models import VolumeInfo, VolumeRecord

logger = logging.getLogger(__name__)


class VolumeRecordNotFound(LookupError):
    pass


class VolumeMetadataStore:
    """
    Persists VolumeInfo records and keeps an index keyed by volume ID.
    """

    def __init__(self, session_factory, db_lock: Optional[threading.Lock] = None):
        """
        Args:
            session_factory: SQLAlchemy sessionmaker bound to the controller DB
            db_lock: Serializes database sessions (an in-memory DB is one shared connection)
        """
        self.session_factory = session_factory
        self._db_lock = db_lock or threading.Lock()
        self._lock = threading.Lock()
        self._index: Dict[str, VolumeInfo] = {}

    # ========================================================================
    # DURABLE RECORDS
    # ========================================================================

    def persist(self, volume: VolumeInfo) -> None:
        """Write (or overwrite) the record for volume.vol_id."""
        with self._db_lock:
            db = self.session_factory()
            try:
                db.merge(VolumeRecord.from_volume(volume))
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()
        logger.debug(f"Persisted volume record {volume.vol_id} ({volume.vol_name})")

    def load(self, vol_id: str) -> VolumeInfo:
        """
        Read a record straight from the database.

        Raises:
            VolumeRecordNotFound: no record for vol_id
        """
        with self._db_lock:
            db = self.session_factory()
            try:
                record = db.get(VolumeRecord, vol_id)
                if record is None:
                    raise VolumeRecordNotFound(f"no metadata record for volume {vol_id}")
                return record.to_volume()
            finally:
                db.close()

    def delete(self, vol_id: str) -> None:
        """Remove the record for vol_id; a missing record is not an error."""
        with self._db_lock:
            db = self.session_factory()
            try:
                record = db.get(VolumeRecord, vol_id)
                if record is not None:
                    db.delete(record)
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()
        logger.debug(f"Deleted volume record {vol_id}")

    def load_all(self) -> int:
        """
        Rebuild the in-memory index from every persisted record.

        Returns:
            Number of volumes loaded
        """
        with self._db_lock:
            db = self.session_factory()
            try:
                volumes = [record.to_volume() for record in db.scalars(select(VolumeRecord)).all()]
            finally:
                db.close()

        with self._lock:
            self._index = {volume.vol_id: volume for volume in volumes}
        logger.info(f"Loaded {len(volumes)} volume records into the index")
        return len(volumes)

    # ========================================================================
    # IN-MEMORY INDEX
    # ========================================================================

    def index_put(self, volume: VolumeInfo) -> None:
        with self._lock:
            self._index[volume.vol_id] = volume

    def index_remove(self, vol_id: str) -> Optional[VolumeInfo]:
        with self._lock:
            return self._index.pop(vol_id, None)

    def get(self, vol_id: str) -> Optional[VolumeInfo]:
        with self._lock:
            return self._index.get(vol_id)

    def get_by_name(self, vol_name: str) -> Optional[VolumeInfo]:
        with self._lock:
            for volume in self._index.values():
                if volume.vol_name == vol_name:
                    return volume
        return None

    def list_volumes(self) -> List[VolumeInfo]:
        with self._lock:
            return sorted(self._index.values(), key=lambda v: v.vol_name)
