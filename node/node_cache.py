"""
Node Credential Cache

Maps volume ID -> NodeCacheEntry for every volume with stage state on this
node. An entry records the options the volume was staged with, the admin
identity used to create its dedicated user (dynamic provisioning only), its
lifecycle state and its publish targets.

Entries are mirrored to the node database when a NodeCacheStore is given, so a
restarted node process still knows which dedicated users it owes cleanup for.
"""

import json
import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Set

from sqlalchemy import select

from node.models import NodeCacheRecord, VolumeState
from node.volume_options import NodeVolumeOptions

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    VolumeState.UNSTAGED: {VolumeState.UNSTAGED, VolumeState.STAGED},
    VolumeState.STAGED: {VolumeState.STAGED, VolumeState.PUBLISHED, VolumeState.UNSTAGED},
    VolumeState.PUBLISHED: {VolumeState.PUBLISHED, VolumeState.STAGED},
}


class CacheEntryNotFound(LookupError):
    pass


class InvalidTransition(ValueError):
    pass


@dataclass
class NodeCacheEntry:
    vol_options: NodeVolumeOptions
    admin_id: Optional[str] = None
    state: VolumeState = VolumeState.UNSTAGED
    targets: Set[str] = field(default_factory=set)

    def copy(self) -> "NodeCacheEntry":
        return replace(self, targets=set(self.targets))


class NodeCacheStore:
    """Durable copy of the cache in the node database."""

    def __init__(self, session_factory, db_lock: Optional[threading.Lock] = None):
        self.session_factory = session_factory
        self._db_lock = db_lock or threading.Lock()

    def save(self, volume_id: str, entry: NodeCacheEntry) -> None:
        with self._db_lock:
            db = self.session_factory()
            try:
                db.merge(NodeCacheRecord(
                    volume_id=volume_id,
                    provision_volume=entry.vol_options.provision_volume,
                    admin_id=entry.admin_id,
                    options=json.dumps(entry.vol_options.to_dict(), sort_keys=True),
                    state=entry.state.value,
                    targets=json.dumps(sorted(entry.targets)),
                ))
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    def delete(self, volume_id: str) -> None:
        with self._db_lock:
            db = self.session_factory()
            try:
                record = db.get(NodeCacheRecord, volume_id)
                if record is not None:
                    db.delete(record)
                db.commit()
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    def load_all(self) -> Dict[str, NodeCacheEntry]:
        with self._db_lock:
            db = self.session_factory()
            try:
                records = db.scalars(select(NodeCacheRecord)).all()
                return {
                    record.volume_id: NodeCacheEntry(
                        vol_options=NodeVolumeOptions.from_dict(json.loads(record.options or "{}")),
                        admin_id=record.admin_id,
                        state=VolumeState(record.state),
                        targets=set(json.loads(record.targets or "[]")),
                    )
                    for record in records
                }
            finally:
                db.close()


class NodeCache:
    """
    Lock-guarded volume ID -> NodeCacheEntry map.

    Callers needing a read-modify-write sequence across several calls (such
    as pop then reinsert) serialize on the volume ID themselves.
    """

    def __init__(self, store: Optional[NodeCacheStore] = None):
        self.store = store
        self._lock = threading.Lock()
        self._entries: Dict[str, NodeCacheEntry] = {}
        if store is not None:
            self._entries = store.load_all()
            if self._entries:
                logger.info(f"Restored {len(self._entries)} node cache entries")

    def _save(self, volume_id: str, entry: NodeCacheEntry) -> None:
        if self.store is not None:
            self.store.save(volume_id, entry)

    def insert(self, volume_id: str, entry: NodeCacheEntry) -> None:
        """Add or replace an entry; it stays in memory even if persisting it fails."""
        with self._lock:
            self._entries[volume_id] = entry.copy()
            self._save(volume_id, entry)
        logger.debug(f"node cache: inserted entry for volume {volume_id} ({entry.state.value})")

    def pop(self, volume_id: str) -> NodeCacheEntry:
        with self._lock:
            entry = self._entries.get(volume_id)
            if entry is None:
                raise CacheEntryNotFound(f"node cache entry for volume {volume_id} not found")
            if self.store is not None:
                self.store.delete(volume_id)
            del self._entries[volume_id]
        logger.debug(f"node cache: popped entry for volume {volume_id}")
        return entry

    def get(self, volume_id: str) -> Optional[NodeCacheEntry]:
        with self._lock:
            entry = self._entries.get(volume_id)
            return entry.copy() if entry is not None else None

    def __contains__(self, volume_id: str) -> bool:
        with self._lock:
            return volume_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ========================================================================
    # STATE TRANSITIONS
    # ========================================================================

    def _update(self, volume_id: str, new_state: VolumeState, targets: Set[str]) -> NodeCacheEntry:
        entry = self._entries.get(volume_id)
        if entry is None:
            raise CacheEntryNotFound(f"volume {volume_id} is not staged on this node")
        if new_state not in ALLOWED_TRANSITIONS[entry.state]:
            raise InvalidTransition(
                f"volume {volume_id}: cannot move from {entry.state.value} to {new_state.value}"
            )
        updated = replace(entry, state=new_state, targets=set(targets))
        self._save(volume_id, updated)
        self._entries[volume_id] = updated
        return updated.copy()

    def mark_staged(self, volume_id: str) -> NodeCacheEntry:
        """UNSTAGED -> STAGED; already staged or published entries are left as they are."""
        with self._lock:
            entry = self._entries.get(volume_id)
            if entry is not None and entry.state != VolumeState.UNSTAGED:
                return entry.copy()
            return self._update(volume_id, VolumeState.STAGED, set())

    def add_target(self, volume_id: str, target_path: str) -> NodeCacheEntry:
        with self._lock:
            entry = self._entries.get(volume_id)
            if entry is None:
                raise CacheEntryNotFound(f"volume {volume_id} is not staged on this node")
            return self._update(volume_id, VolumeState.PUBLISHED, entry.targets | {target_path})

    def remove_target(self, volume_id: str, target_path: str) -> Optional[NodeCacheEntry]:
        """Forget a publish target; returns None when the volume has no entry."""
        with self._lock:
            entry = self._entries.get(volume_id)
            if entry is None:
                return None
            remaining = entry.targets - {target_path}
            new_state = entry.state
            if entry.state == VolumeState.PUBLISHED and not remaining:
                new_state = VolumeState.STAGED
            return self._update(volume_id, new_state, remaining)
