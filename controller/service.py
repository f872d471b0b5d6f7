"""
Controller Service Entrypoint

Builds the process-scoped controller state (database, metadata store,
backend) and the FastAPI application serving the controller RPCs.
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from controller import api
from controller.controller_service import ControllerService
from controller.database import init_controller_database
from controller.metadata_store import VolumeMetadataStore
from shared.config import PLUGIN_ROOT, controller_db_url
from shared.file_backend import FileBackend
from shared.interfaces import Backend

logger = logging.getLogger(__name__)


def build_controller_service(
    plugin_root: str = PLUGIN_ROOT,
    database_url: Optional[str] = None,
    backend: Optional[Backend] = None,
) -> ControllerService:
    """
    Construct a ControllerService with its metadata store reloaded from disk.

    Args:
        plugin_root: Root folder for plugin state
        database_url: Controller DB URL (default: <plugin_root>/controller/volumes.db)
        backend: Storage backend (default: FileBackend under <plugin_root>/backend)
    """
    _, SessionLocal = init_controller_database(database_url or controller_db_url(plugin_root))
    store = VolumeMetadataStore(SessionLocal)
    store.load_all()

    if backend is None:
        backend = FileBackend(str(Path(plugin_root) / "backend"))

    return ControllerService(store=store, backend=backend)


def create_app(controller_service: ControllerService) -> FastAPI:
    app = FastAPI(title="Volume Plugin Controller", version="0.1.0")
    app.state.controller_service = controller_service
    app.include_router(api.router)

    @app.get("/")
    def root():
        return {
            "service": "controller",
            "volume_count": len(controller_service.store.list_volumes()),
        }

    logger.info("Controller application created")
    return app
