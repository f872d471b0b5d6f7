from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.orm import declarative_base
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, List
import enum
import json

Base = declarative_base()

# ============================================================================
# ENUM DEFINITIONS
# ============================================================================

class AccessMode(str, enum.Enum):
    """Volume capability access modes"""
    UNKNOWN = "UNKNOWN"
    SINGLE_NODE_WRITER = "SINGLE_NODE_WRITER"
    SINGLE_NODE_READER_ONLY = "SINGLE_NODE_READER_ONLY"
    MULTI_NODE_READER_ONLY = "MULTI_NODE_READER_ONLY"
    MULTI_NODE_SINGLE_WRITER = "MULTI_NODE_SINGLE_WRITER"
    MULTI_NODE_MULTI_WRITER = "MULTI_NODE_MULTI_WRITER"


class ControllerCapability(str, enum.Enum):
    """RPCs advertised by the controller service"""
    CREATE_DELETE_VOLUME = "CREATE_DELETE_VOLUME"
    PUBLISH_UNPUBLISH_VOLUME = "PUBLISH_UNPUBLISH_VOLUME"

# ============================================================================
# DOMAIN OBJECTS
# ============================================================================

@dataclass
class VolumeInfo:
    """Provisioning facts for one backend image"""
    pool: str
    monitors: str = ""
    mon_value_from_secret: str = ""
    image_format: str = "2"
    image_features: str = ""
    admin_id: str = "admin"
    user_id: str = "admin"
    mounter: str = ""
    vol_name: str = ""
    vol_id: str = ""
    vol_size: int = 0
    parameters: Dict[str, str] = field(default_factory=dict)

    def feature_list(self) -> List[str]:
        return [f.strip() for f in self.image_features.split(",") if f.strip()]

# ============================================================================
# PERSISTED RECORDS
# ============================================================================

class VolumeRecord(Base):
    """One row per provisioned volume, keyed by volume ID"""
    __tablename__ = "volumes"

    vol_id = Column(String, primary_key=True)
    vol_name = Column(String, nullable=False, index=True)
    pool = Column(String, nullable=False)
    vol_size = Column(Integer, nullable=False)
    monitors = Column(String, default="")
    mon_value_from_secret = Column(String, default="")
    image_format = Column(String, default="2")
    image_features = Column(String, default="")
    admin_id = Column(String, default="admin")
    user_id = Column(String, default="admin")
    mounter = Column(String, default="")
    parameters = Column(Text, default="{}")  # JSON passthrough attributes
    created_at = Column(DateTime, default=datetime.utcnow)

    @classmethod
    def from_volume(cls, volume: VolumeInfo) -> "VolumeRecord":
        values = asdict(volume)
        values["parameters"] = json.dumps(volume.parameters, sort_keys=True)
        return cls(**values)

    def to_volume(self) -> VolumeInfo:
        return VolumeInfo(
            pool=self.pool,
            monitors=self.monitors or "",
            mon_value_from_secret=self.mon_value_from_secret or "",
            image_format=self.image_format or "2",
            image_features=self.image_features or "",
            admin_id=self.admin_id or "admin",
            user_id=self.user_id or "admin",
            mounter=self.mounter or "",
            vol_name=self.vol_name,
            vol_id=self.vol_id,
            vol_size=int(self.vol_size),
            parameters=json.loads(self.parameters or "{}"),
        )

# ============================================================================
# REQUEST / RESPONSE OBJECTS
# ============================================================================

@dataclass
class VolumeCapability:
    access_mode: AccessMode = AccessMode.UNKNOWN
    fs_type: str = ""
    mount_flags: List[str] = field(default_factory=list)


@dataclass
class CapacityRange:
    required_bytes: int = 0
    limit_bytes: int = 0


@dataclass
class CreateVolumeResult:
    volume_id: str
    capacity_bytes: int
    attributes: Dict[str, str] = field(default_factory=dict)


@dataclass
class ValidationResult:
    supported: bool
    message: str = ""
