"""Logging setup for stamp.

Every module logs through `logging.getLogger(__name__)`; this module
only decides where records go and at which level.
"""

import logging
import os
import sys
from typing import Optional, Union

LOG_FORMAT = "[%(levelname)s] %(message)s"
DEBUG_LOG_FORMAT = "[%(levelname)s] [%(name)s:%(lineno)d] %(message)s"
ENV_LOG_LEVEL = "STAMP_LOG_LEVEL"


def resolve_log_level(value: Union[str, int, None]) -> Optional[int]:
    """Turns 'DEBUG', 'info' or '10' into a logging level; None when unknown."""
    if value is None or value == "":
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.isdigit():
        return int(text)
    level = logging.getLevelName(text.upper())
    return level if isinstance(level, int) else None


def resolve_env_log_level() -> Optional[int]:
    """Return a logging level from STAMP_LOG_LEVEL or None if unset."""
    return resolve_log_level(os.environ.get(ENV_LOG_LEVEL))


def configure_logging(level: Union[str, int, None] = None) -> logging.Logger:
    """Installs one stderr handler on the 'stamp' logger.

    The level is taken from the argument, then STAMP_LOG_LEVEL, then
    WARNING. Calling it again only changes the level.
    """
    resolved = resolve_log_level(level)
    if resolved is None:
        resolved = resolve_env_log_level()
    if resolved is None:
        resolved = logging.WARNING

    logger = logging.getLogger("stamp")
    logger.setLevel(resolved)
    handler = next((h for h in logger.handlers if getattr(h, "_stamp_handler", False)), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        handler._stamp_handler = True
        logger.addHandler(handler)
    handler.setFormatter(logging.Formatter(DEBUG_LOG_FORMAT if resolved <= logging.DEBUG else LOG_FORMAT))
    return logger
