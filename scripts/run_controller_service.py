"""
Controller Service Launcher

Starts the controller role: volume create/delete, capability validation and
the durable volume metadata store.

Usage:
    python scripts/run_controller_service.py --host 0.0.0.0 --port 8011

Environment Variables:
    VOLPLUGIN_ROOT: Root folder for plugin state (default: ./plugin_data)
    VOLPLUGIN_CONTROLLER_PORT: Controller API port (default: 8011)
    VOLPLUGIN_CONTROLLER_DB_URL: Override for the controller database URL
    VOLPLUGIN_LOG_LEVEL: Log level (default: INFO)
"""
import argparse
import os
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import uvicorn

from controller.service import build_controller_service, create_app
from shared.config import CONTROLLER_PORT, LOG_LEVEL, PLUGIN_ROOT
from shared.logging_config import setup_logging
from shared.startup_profile import ROLE_CONTROLLER, StartupProfile, validate_controller_profile


def main() -> None:
    parser = argparse.ArgumentParser(description="Run volume plugin controller service")
    parser.add_argument("--host", default=os.getenv("VOLPLUGIN_BIND_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=CONTROLLER_PORT)
    parser.add_argument("--plugin-root", default=PLUGIN_ROOT, help="Root folder for plugin state")
    parser.add_argument("--log-level", default=LOG_LEVEL)
    parser.add_argument("--log-file", default=None)
    args = parser.parse_args()

    logger = setup_logging("controller", level=args.log_level, log_file=args.log_file)

    profile = StartupProfile(role=ROLE_CONTROLLER, host=args.host, port=args.port)
    try:
        validate_controller_profile(profile, args.plugin_root)
    except ValueError as e:
        logger.error(f"Invalid controller configuration: {e}")
        sys.exit(2)

    logger.info(f"API Address: {args.host}:{args.port}")
    logger.info(f"Plugin root: {args.plugin_root}")

    service = build_controller_service(plugin_root=args.plugin_root)
    uvicorn.run(create_app(service), host=args.host, port=args.port, reload=False)


if __name__ == "__main__":
    main()
