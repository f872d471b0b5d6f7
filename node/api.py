"""
Node API

FastAPI routes for the node RPCs.

Endpoints:
- POST /node/stage_volume
- POST /node/publish_volume
- POST /node/unpublish_volume
- POST /node/unstage_volume
- GET /node/capabilities
- GET /node/volumes/{volume_id}: cached per-volume state (for debugging)
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from node.node_service import NodeService
from shared.errors import PluginError

router = APIRouter(prefix="/node", tags=["node"])


def get_node_service(request: Request) -> NodeService:
    """Dependency returning the process-scoped NodeService"""
    service = getattr(request.app.state, "node_service", None)
    if service is None:
        raise HTTPException(status_code=500, detail={"code": "Internal", "message": "Node not initialized"})
    return service


def _raise_http(error: PluginError):
    raise HTTPException(status_code=error.http_status, detail=error.to_detail())


class NodeStageVolumeRequest(BaseModel):
    volume_id: str = ""
    staging_target_path: str = ""
    volume_attributes: Dict[str, str] = Field(default_factory=dict)
    node_stage_secrets: Dict[str, str] = Field(default_factory=dict)


class NodePublishVolumeRequest(BaseModel):
    volume_id: str = ""
    staging_target_path: str = ""
    target_path: str = ""
    readonly: bool = False


class NodeUnpublishVolumeRequest(BaseModel):
    volume_id: str = ""
    target_path: str = ""


class NodeUnstageVolumeRequest(BaseModel):
    volume_id: str = ""
    staging_target_path: str = ""


class VolumeStateInfo(BaseModel):
    """Cached node state of one volume"""
    volume_id: str
    state: str
    provision_volume: bool
    targets: List[str]
    admin_id: Optional[str] = None


@router.post("/stage_volume")
def node_stage_volume(request: NodeStageVolumeRequest, service: NodeService = Depends(get_node_service)):
    try:
        service.node_stage_volume(
            volume_id=request.volume_id,
            staging_target_path=request.staging_target_path,
            volume_attributes=request.volume_attributes,
            secrets=request.node_stage_secrets,
        )
    except PluginError as e:
        _raise_http(e)
    return {}


@router.post("/publish_volume")
def node_publish_volume(request: NodePublishVolumeRequest, service: NodeService = Depends(get_node_service)):
    try:
        service.node_publish_volume(
            volume_id=request.volume_id,
            staging_target_path=request.staging_target_path,
            target_path=request.target_path,
            readonly=request.readonly,
        )
    except PluginError as e:
        _raise_http(e)
    return {}


@router.post("/unpublish_volume")
def node_unpublish_volume(request: NodeUnpublishVolumeRequest, service: NodeService = Depends(get_node_service)):
    try:
        service.node_unpublish_volume(request.volume_id, request.target_path)
    except PluginError as e:
        _raise_http(e)
    return {}


@router.post("/unstage_volume")
def node_unstage_volume(request: NodeUnstageVolumeRequest, service: NodeService = Depends(get_node_service)):
    try:
        service.node_unstage_volume(request.volume_id, request.staging_target_path)
    except PluginError as e:
        _raise_http(e)
    return {}


@router.get("/capabilities")
def node_get_capabilities(service: NodeService = Depends(get_node_service)):
    return {"capabilities": [cap.value for cap in service.node_get_capabilities()]}


@router.get("/volumes/{volume_id}", response_model=VolumeStateInfo)
def get_volume_state(volume_id: str, service: NodeService = Depends(get_node_service)):
    entry = service.cache.get(volume_id)
    if entry is None:
        raise HTTPException(status_code=404, detail={"code": "NotFound", "message": f"volume {volume_id} not staged"})
    return VolumeStateInfo(
        volume_id=volume_id,
        state=entry.state.value,
        provision_volume=entry.vol_options.provision_volume,
        targets=sorted(entry.targets),
        admin_id=entry.admin_id,
    )
