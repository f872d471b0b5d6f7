"""
Node Local Database Models

Local SQLite database (<node_id>.db) for node-specific state.
Separate from the controller's volumes.db.

Tables:
- credentials: Credentials used for each staged volume (admin and user)
- node_cache: Persisted node cache entries, so cleanup state survives restarts
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base
from datetime import datetime
import enum

Base = declarative_base()


class VolumeState(str, enum.Enum):
    """Per-node lifecycle state of a volume"""
    UNSTAGED = "UNSTAGED"
    STAGED = "STAGED"
    PUBLISHED = "PUBLISHED"


class NodeCapability(str, enum.Enum):
    """RPCs advertised by the node service"""
    STAGE_UNSTAGE_VOLUME = "STAGE_UNSTAGE_VOLUME"


class CredentialRecord(Base):
    """
    Credentials stored for a volume, keyed by (volume_id, user_id).
    Admin credentials are kept so the dedicated user can be deleted at unstage.
    """
    __tablename__ = "credentials"
    __table_args__ = (UniqueConstraint("volume_id", "user_id", name="uq_credentials_volume_user"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    volume_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False)
    key = Column(String, nullable=False)
    stored_at = Column(DateTime, default=datetime.utcnow)


class NodeCacheRecord(Base):
    """
    Durable copy of a node cache entry.
    admin_id is only set for dynamically provisioned volumes.
    """
    __tablename__ = "node_cache"

    volume_id = Column(String, primary_key=True)
    provision_volume = Column(Boolean, nullable=False, default=False)
    admin_id = Column(String, nullable=True)
    options = Column(Text, nullable=False, default="{}")  # JSON NodeVolumeOptions
    state = Column(String, nullable=False, default=VolumeState.UNSTAGED.value)
    targets = Column(Text, nullable=False, default="[]")  # JSON list of publish targets
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
