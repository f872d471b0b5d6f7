from dataclasses import asdict, dataclass
from typing import Dict, Optional

MOUNTER_KERNEL = "kernel"
MOUNTER_FUSE = "fuse"
AVAILABLE_MOUNTERS = (MOUNTER_KERNEL, MOUNTER_FUSE)

_TRUE_VALUES = {"1", "t", "true"}
_FALSE_VALUES = {"0", "f", "false"}


@dataclass
class NodeVolumeOptions:
    """Options a volume is staged with, taken from the volume attributes"""
    monitors: str
    provision_volume: bool
    pool: str = ""
    root_path: str = ""
    mounter: str = ""

    def monitor_list(self):
        return [m.strip() for m in self.monitors.split(",") if m.strip()]

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "NodeVolumeOptions":
        return cls(
            monitors=data.get("monitors", ""),
            provision_volume=bool(data.get("provision_volume", False)),
            pool=data.get("pool", ""),
            root_path=data.get("root_path", ""),
            mounter=data.get("mounter", ""),
        )


def _extract(attributes: Dict[str, str], field_name: str) -> str:
    if field_name not in attributes:
        raise ValueError(f"Missing required field {field_name}")
    value = attributes[field_name]
    if value == "":
        raise ValueError(f"Empty field {field_name}")
    return value


def _parse_bool(value: str, field_name: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Failed to parse {field_name}: invalid boolean {value!r}")


def parse_volume_attributes(attributes: Optional[Dict[str, str]]) -> NodeVolumeOptions:
    """
    Build NodeVolumeOptions from NodeStageVolume attributes.

    Dynamically provisioned volumes need a pool, pre-provisioned ones a
    rootPath. The mounter is optional.

    Raises:
        ValueError: on a missing, empty or invalid field
    """
    attrs = dict(attributes or {})

    monitors = _extract(attrs, "monitors")
    provision_volume = _parse_bool(_extract(attrs, "provisionVolume"), "provisionVolume")

    pool = ""
    root_path = ""
    if provision_volume:
        pool = _extract(attrs, "pool")
    else:
        root_path = _extract(attrs, "rootPath")

    mounter = attrs.get("mounter", "")
    if mounter and mounter not in AVAILABLE_MOUNTERS:
        raise ValueError(f"Unknown mounter {mounter!r}, available mounters: {', '.join(AVAILABLE_MOUNTERS)}")

    return NodeVolumeOptions(
        monitors=monitors,
        provision_volume=provision_volume,
        pool=pool,
        root_path=root_path,
        mounter=mounter,
    )
