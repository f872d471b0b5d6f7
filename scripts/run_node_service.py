"""
Node Service Launcher

Starts the node role: stage, publish, unpublish and unstage of volumes on
this host. Cached volume state is restored from the node database on start.

Usage:
    python scripts/run_node_service.py --node-id node-1 --port 8012

Environment Variables:
    VOLPLUGIN_ROOT: Root folder for plugin state (default: ./plugin_data)
    VOLPLUGIN_NODE_ID: Node identifier (default: node-1)
    VOLPLUGIN_NODE_PORT: Node API port (default: 8012)
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

from node.service import build_node_service, create_app
from shared.config import CONTROLLER_PORT, LOG_LEVEL, NODE_ID, NODE_PORT, PLUGIN_ROOT
from shared.logging_config import setup_logging
from shared.startup_profile import ROLE_NODE, StartupProfile, validate_node_profile


def main() -> None:
    parser = argparse.ArgumentParser(description="Run volume plugin node service")
    parser.add_argument("--host", default=os.getenv("VOLPLUGIN_BIND_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=NODE_PORT)
    parser.add_argument("--node-id", default=NODE_ID, help="Node identifier")
    parser.add_argument("--plugin-root", default=PLUGIN_ROOT, help="Root folder for plugin state")
    parser.add_argument("--log-level", default=LOG_LEVEL)
    parser.add_argument("--log-file", default=None)
    parser.add_argument("--in-memory", action="store_true", help="Do not persist node state")
    args = parser.parse_args()

    logger = setup_logging(f"node-{args.node_id}", level=args.log_level, log_file=args.log_file)

    profile = StartupProfile(role=ROLE_NODE, host=args.host, port=args.port)
    try:
        validate_node_profile(profile, args.node_id, args.plugin_root, CONTROLLER_PORT)
    except ValueError as e:
        logger.error(f"Invalid node configuration: {e}")
        sys.exit(2)

    logger.info(f"Node ID: {args.node_id}")
    logger.info(f"API Address: {args.host}:{args.port}")
    logger.info(f"Plugin root: {args.plugin_root}")

    service = build_node_service(
        node_id=args.node_id,
        plugin_root=args.plugin_root,
        persistent=not args.in_memory,
    )
    uvicorn.run(create_app(service), host=args.host, port=args.port, reload=False)


if __name__ == "__main__":
    main()
