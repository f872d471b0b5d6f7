from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

ROLE_CONTROLLER = "controller"
ROLE_NODE = "node"


@dataclass
class StartupProfile:
    role: str
    host: str
    port: int


def _require_valid_port(port: int, field_name: str = "port") -> None:
    if int(port) < 1 or int(port) > 65535:
        raise ValueError(f"{field_name} must be in range 1..65535")


def _require_non_empty_host(host: str) -> None:
    if not str(host or "").strip():
        raise ValueError("host is required")


def validate_controller_profile(profile: StartupProfile, plugin_root: str) -> None:
    if profile.role != ROLE_CONTROLLER:
        raise ValueError(f"expected role {ROLE_CONTROLLER!r}, got {profile.role!r}")
    _require_non_empty_host(profile.host)
    _require_valid_port(profile.port)
    if not str(plugin_root or "").strip():
        raise ValueError("plugin_root is required for the controller service")


def validate_node_profile(profile: StartupProfile, node_id: str, plugin_root: str, controller_port: int) -> None:
    if profile.role != ROLE_NODE:
        raise ValueError(f"expected role {ROLE_NODE!r}, got {profile.role!r}")
    _require_non_empty_host(profile.host)
    _require_valid_port(profile.port)
    if int(profile.port) == int(controller_port):
        raise ValueError(f"node service port {profile.port} conflicts with controller port {controller_port}")
    if not str(node_id or "").strip():
        raise ValueError("node_id is required for the node service")
    if Path(node_id).name != node_id:
        raise ValueError(f"node_id {node_id!r} must not contain path separators")
    if not str(plugin_root or "").strip():
        raise ValueError("plugin_root is required for the node service")
