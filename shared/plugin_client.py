"""
Plugin Client

HTTP client for the controller and node RPCs, used by the orchestrator-side
adapter and by operational tooling. Error responses are turned back into the
PluginError subclasses the services raised.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from shared.errors import Internal, error_from_status

logger = logging.getLogger(__name__)


class PluginClient:
    """
    Client for one plugin endpoint (controller or node).

    Usage:
        controller = PluginClient("http://127.0.0.1:8011")
        volume = controller.create_volume(
            name="pvc-1",
            volume_capabilities=[{"access_mode": "SINGLE_NODE_WRITER"}],
            required_bytes=2147483648,
            parameters={"pool": "rbd", "monitors": "10.0.0.1:6789"},
        )

        node = PluginClient("http://127.0.0.1:8012")
        node.node_stage_volume(volume["volume_id"], "/staging/pvc-1", attributes, secrets)
    """

    def __init__(self, base_url: str, timeout: int = 30, session: Optional[requests.Session] = None):
        """
        Args:
            base_url: Service base URL (e.g., 'http://10.0.1.1:8011')
            timeout: Per-request timeout in seconds
            session: Optional pre-configured requests session
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, payload: Optional[Dict] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise Internal(f"request to {url} failed: {e}") from e

        if response.status_code >= 400:
            raise self._error_from_response(response)
        if not response.content:
            return {}
        return response.json()

    @staticmethod
    def _error_from_response(response: requests.Response):
        code = None
        message = response.text
        try:
            detail = response.json().get("detail")
        except ValueError:
            detail = None
        if isinstance(detail, dict):
            code = detail.get("code")
            message = detail.get("message", message)
        elif isinstance(detail, str):
            message = detail
        return error_from_status(response.status_code, message, code)

    # ========================================================================
    # CONTROLLER
    # ========================================================================

    def create_volume(
        self,
        name: str,
        volume_capabilities: List[Dict[str, Any]],
        required_bytes: Optional[int] = None,
        parameters: Optional[Dict[str, str]] = None,
        secrets: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        payload = {
            "name": name,
            "volume_capabilities": volume_capabilities,
            "parameters": parameters or {},
            "controller_create_secrets": secrets or {},
        }
        if required_bytes is not None:
            payload["capacity_range"] = {"required_bytes": required_bytes}
        return self._request("POST", "/controller/create_volume", payload)

    def delete_volume(self, volume_id: str, secrets: Optional[Dict[str, str]] = None) -> None:
        self._request("POST", "/controller/delete_volume", {
            "volume_id": volume_id,
            "controller_delete_secrets": secrets or {},
        })

    def validate_volume_capabilities(self, volume_id: str, volume_capabilities: List[Dict[str, Any]]) -> Dict[str, Any]:
        return self._request("POST", "/controller/validate_volume_capabilities", {
            "volume_id": volume_id,
            "volume_capabilities": volume_capabilities,
        })

    def controller_publish_volume(self, volume_id: str, node_id: str) -> None:
        self._request("POST", "/controller/publish_volume", {"volume_id": volume_id, "node_id": node_id})

    def controller_unpublish_volume(self, volume_id: str, node_id: str) -> None:
        self._request("POST", "/controller/unpublish_volume", {"volume_id": volume_id, "node_id": node_id})

    def controller_get_capabilities(self) -> List[str]:
        return self._request("GET", "/controller/capabilities").get("capabilities", [])

    # ========================================================================
    # NODE
    # ========================================================================

    def node_stage_volume(
        self,
        volume_id: str,
        staging_target_path: str,
        volume_attributes: Dict[str, str],
        secrets: Dict[str, str],
    ) -> None:
        self._request("POST", "/node/stage_volume", {
            "volume_id": volume_id,
            "staging_target_path": staging_target_path,
            "volume_attributes": volume_attributes,
            "node_stage_secrets": secrets,
        })

    def node_publish_volume(self, volume_id: str, staging_target_path: str, target_path: str, readonly: bool = False) -> None:
        self._request("POST", "/node/publish_volume", {
            "volume_id": volume_id,
            "staging_target_path": staging_target_path,
            "target_path": target_path,
            "readonly": readonly,
        })

    def node_unpublish_volume(self, volume_id: str, target_path: str) -> None:
        self._request("POST", "/node/unpublish_volume", {"volume_id": volume_id, "target_path": target_path})

    def node_unstage_volume(self, volume_id: str, staging_target_path: str) -> None:
        self._request("POST", "/node/unstage_volume", {
            "volume_id": volume_id,
            "staging_target_path": staging_target_path,
        })

    def node_get_capabilities(self) -> List[str]:
        return self._request("GET", "/node/capabilities").get("capabilities", [])
