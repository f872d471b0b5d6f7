"""
Logging configuration for the plugin services.

One call per process, from the launcher, before the app is built. Records
carry the component (controller, node-<id>) and the emitting module, so
the lifecycle steps of one volume can be followed across modules.
"""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional, Union

DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Third-party loggers kept at WARNING unless the plugin itself runs at DEBUG
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "urllib3")


def resolve_level(level: Union[int, str]) -> int:
    """Accept 10, 'debug' or 'DEBUG'; unknown names fall back to INFO."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    component_name: str,
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    quiet_loggers: Iterable[str] = NOISY_LOGGERS,
):
    """
    Configure logging for a plugin component.

    Args:
        component_name: Component identifier (e.g., 'controller', 'node-node-1')
        level: Logging level, either a number or a name such as 'DEBUG'
        log_file: Optional file path for log output
        format_string: Custom format string (default provided)
        quiet_loggers: Logger names capped at WARNING when level is above DEBUG
    """
    level = resolve_level(level)

    if format_string is None:
        format_string = f'[%(asctime)s] [{component_name.upper()}] %(levelname)s %(name)s - %(message)s'

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    # force: launchers and tests may configure more than once per process
    logging.basicConfig(
        level=level,
        format=format_string,
        datefmt=DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    if level > logging.DEBUG:
        for name in quiet_loggers:
            logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(component_name)
    logger.info(f"{component_name.upper()} logging initialized (level={logging.getLevelName(level)})")

    return logger
