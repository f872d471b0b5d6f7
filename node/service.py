"""
Node Service Entrypoint

Builds the process-scoped node state (local database, node cache,
credential manager, mounter) and the FastAPI application serving the node
RPCs.

Usage:
    from node.service import build_node_service, create_app

    service = build_node_service(node_id="node-1", plugin_root="/var/lib/volplugin")
    app = create_app(service)
"""

import logging
import threading
from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from node import api
from node.credentials import CredentialManager, CredentialStore
from node.database import init_node_database
from node.node_cache import NodeCache, NodeCacheStore
from node.node_service import NodeService
from shared.command_mounter import CommandMounter
from shared.config import NODE_ID, PLUGIN_ROOT, node_folder
from shared.file_backend import FileBackend
from shared.interfaces import Backend, Mounter

logger = logging.getLogger(__name__)


def build_node_service(
    node_id: str = NODE_ID,
    plugin_root: str = PLUGIN_ROOT,
    backend: Optional[Backend] = None,
    mounter: Optional[Mounter] = None,
    persistent: bool = True,
) -> NodeService:
    """
    Construct a NodeService, restoring cached volume state from the node DB.

    Args:
        node_id: Identifier of this node (names the local database)
        plugin_root: Root folder for plugin state
        backend: Storage backend for dedicated users (default: FileBackend)
        mounter: Host mounter (default: CommandMounter)
        persistent: Keep node state on disk; False keeps it in memory only
    """
    root = node_folder(plugin_root)
    config_root = root / "conf"

    _, SessionLocal = init_node_database(node_id, root if persistent else None)

    if backend is None:
        backend = FileBackend(str(Path(plugin_root) / "backend"))
    if mounter is None:
        mounter = CommandMounter(str(config_root))

    # Both stores share the single node DB connection
    db_lock = threading.Lock()
    cache = NodeCache(NodeCacheStore(SessionLocal, db_lock))
    credential_manager = CredentialManager(backend, CredentialStore(SessionLocal, db_lock))

    logger.info(f"Node service initialized: {node_id} ({len(cache)} cached volumes)")
    return NodeService(
        node_id=node_id,
        mounter=mounter,
        credential_manager=credential_manager,
        cache=cache,
        config_root=config_root,
    )


def create_app(node_service: NodeService) -> FastAPI:
    app = FastAPI(title="Volume Plugin Node", version="0.1.0")
    app.state.node_service = node_service
    app.include_router(api.router)

    @app.get("/")
    def root():
        return {
            "service": "node",
            "node_id": node_service.node_id,
            "cached_volumes": len(node_service.cache),
        }

    logger.info(f"Node application created for {node_service.node_id}")
    return app
