import os
from pathlib import Path


def _int_env(name: str, default: int) -> int:
    raw = str(os.getenv(name, str(default))).strip()
    try:
        return int(raw)
    except ValueError:
        return default


def _str_env(name: str, default: str) -> str:
    value = str(os.getenv(name, default)).strip()
    return value or default


PLUGIN_ROOT = _str_env("VOLPLUGIN_ROOT", "./plugin_data")
CONTROLLER_PORT = _int_env("VOLPLUGIN_CONTROLLER_PORT", 8011)
NODE_PORT = _int_env("VOLPLUGIN_NODE_PORT", 8012)
NODE_ID = _str_env("VOLPLUGIN_NODE_ID", "node-1")
LOG_LEVEL = _str_env("VOLPLUGIN_LOG_LEVEL", "INFO").upper()

# Default volume size when the request carries no capacity range
ONE_GIB = 1073741824


def controller_folder(root: str = PLUGIN_ROOT) -> Path:
    return Path(root) / "controller"


def node_folder(root: str = PLUGIN_ROOT) -> Path:
    return Path(root) / "node"


def controller_db_url(root: str = PLUGIN_ROOT) -> str:
    configured = os.getenv("VOLPLUGIN_CONTROLLER_DB_URL")
    if configured:
        return configured
    return f"sqlite:///{controller_folder(root) / 'volumes.db'}"
