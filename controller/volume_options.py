from typing import Dict, Optional

from controller.models import VolumeInfo

IMAGE_FORMAT_1 = "1"
IMAGE_FORMAT_2 = "2"
SUPPORTED_FEATURES = {"layering"}
DEFAULT_ADMIN_ID = "admin"
DEFAULT_USER_ID = "admin"
DEFAULT_MOUNTER = "rbd"


def parse_volume_parameters(parameters: Optional[Dict[str, str]]) -> VolumeInfo:
    """
    Build a VolumeInfo from CreateVolume parameters.

    Raises:
        ValueError: missing pool/monitors, unknown image format or feature
    """
    params = dict(parameters or {})

    pool = params.get("pool", "")
    if not pool:
        raise ValueError("Missing required parameter pool")

    monitors = params.get("monitors", "")
    mon_value_from_secret = params.get("monValueFromSecret", "")
    if not monitors and not mon_value_from_secret:
        raise ValueError("Either monitors or monValueFromSecret must be set")

    image_format = params.get("imageFormat") or IMAGE_FORMAT_2
    if image_format not in (IMAGE_FORMAT_1, IMAGE_FORMAT_2):
        raise ValueError(f"Invalid imageFormat {image_format!r}, expected 1 or 2")

    image_features = ""
    if image_format == IMAGE_FORMAT_2 and "imageFeatures" in params:
        # An empty string disables every format 2 feature
        image_features = params["imageFeatures"]
        for feature in (f.strip() for f in image_features.split(",")):
            if feature and feature not in SUPPORTED_FEATURES:
                raise ValueError(
                    f"Invalid feature {feature!r}, supported features are: {sorted(SUPPORTED_FEATURES)}"
                )

    return VolumeInfo(
        pool=pool,
        monitors=monitors,
        mon_value_from_secret=mon_value_from_secret,
        image_format=image_format,
        image_features=image_features,
        admin_id=params.get("adminid") or DEFAULT_ADMIN_ID,
        user_id=params.get("userid") or DEFAULT_USER_ID,
        mounter=params.get("mounter") or DEFAULT_MOUNTER,
        parameters=params,
    )
