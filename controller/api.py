"""
Controller API

FastAPI routes for the controller RPCs.

Endpoints:
- POST /controller/create_volume
- POST /controller/delete_volume
- POST /controller/validate_volume_capabilities
- POST /controller/publish_volume: no-op
- POST /controller/unpublish_volume: no-op
- GET /controller/capabilities
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from controller.controller_service import ControllerService
from controller.models import AccessMode, CapacityRange, VolumeCapability
from shared.errors import PluginError

router = APIRouter(prefix="/controller", tags=["controller"])


def get_controller_service(request: Request) -> ControllerService:
    """Dependency returning the process-scoped ControllerService"""
    service = getattr(request.app.state, "controller_service", None)
    if service is None:
        raise HTTPException(status_code=500, detail={"code": "Internal", "message": "Controller not initialized"})
    return service


def _raise_http(error: PluginError):
    raise HTTPException(status_code=error.http_status, detail=error.to_detail())


class VolumeCapabilityModel(BaseModel):
    access_mode: AccessMode = AccessMode.UNKNOWN
    fs_type: str = ""
    mount_flags: List[str] = Field(default_factory=list)

    def to_capability(self) -> VolumeCapability:
        return VolumeCapability(
            access_mode=self.access_mode,
            fs_type=self.fs_type,
            mount_flags=list(self.mount_flags),
        )


class CapacityRangeModel(BaseModel):
    required_bytes: int = 0
    limit_bytes: int = 0


class CreateVolumeRequest(BaseModel):
    name: str = ""
    volume_capabilities: List[VolumeCapabilityModel] = Field(default_factory=list)
    capacity_range: Optional[CapacityRangeModel] = None
    parameters: Dict[str, str] = Field(default_factory=dict)
    controller_create_secrets: Dict[str, str] = Field(default_factory=dict)


class CreateVolumeResponse(BaseModel):
    volume_id: str
    capacity_bytes: int
    attributes: Dict[str, str]


class DeleteVolumeRequest(BaseModel):
    volume_id: str = ""
    controller_delete_secrets: Dict[str, str] = Field(default_factory=dict)


class ValidateVolumeCapabilitiesRequest(BaseModel):
    volume_id: str = ""
    volume_capabilities: List[VolumeCapabilityModel] = Field(default_factory=list)


class ValidateVolumeCapabilitiesResponse(BaseModel):
    supported: bool
    message: str = ""


class ControllerPublishRequest(BaseModel):
    volume_id: str = ""
    node_id: str = ""


@router.post("/create_volume", response_model=CreateVolumeResponse)
def create_volume(request: CreateVolumeRequest, service: ControllerService = Depends(get_controller_service)):
    capacity_range = None
    if request.capacity_range is not None:
        capacity_range = CapacityRange(
            required_bytes=request.capacity_range.required_bytes,
            limit_bytes=request.capacity_range.limit_bytes,
        )
    try:
        result = service.create_volume(
            name=request.name,
            volume_capabilities=[cap.to_capability() for cap in request.volume_capabilities],
            capacity_range=capacity_range,
            parameters=request.parameters,
            secrets=request.controller_create_secrets,
        )
    except PluginError as e:
        _raise_http(e)
    return CreateVolumeResponse(
        volume_id=result.volume_id,
        capacity_bytes=result.capacity_bytes,
        attributes=result.attributes,
    )


@router.post("/delete_volume")
def delete_volume(request: DeleteVolumeRequest, service: ControllerService = Depends(get_controller_service)):
    try:
        service.delete_volume(request.volume_id, request.controller_delete_secrets)
    except PluginError as e:
        _raise_http(e)
    return {}


@router.post("/validate_volume_capabilities", response_model=ValidateVolumeCapabilitiesResponse)
def validate_volume_capabilities(
    request: ValidateVolumeCapabilitiesRequest,
    service: ControllerService = Depends(get_controller_service),
):
    try:
        result = service.validate_volume_capabilities(
            [cap.to_capability() for cap in request.volume_capabilities]
        )
    except PluginError as e:
        _raise_http(e)
    return ValidateVolumeCapabilitiesResponse(supported=result.supported, message=result.message)


@router.post("/publish_volume")
def controller_publish_volume(
    request: ControllerPublishRequest,
    service: ControllerService = Depends(get_controller_service),
):
    service.controller_publish_volume(request.volume_id, request.node_id)
    return {}


@router.post("/unpublish_volume")
def controller_unpublish_volume(
    request: ControllerPublishRequest,
    service: ControllerService = Depends(get_controller_service),
):
    service.controller_unpublish_volume(request.volume_id, request.node_id)
    return {}


@router.get("/capabilities")
def controller_get_capabilities(service: ControllerService = Depends(get_controller_service)):
    return {"capabilities": [cap.value for cap in service.controller_get_capabilities()]}
