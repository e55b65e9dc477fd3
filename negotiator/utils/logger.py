"""
Logging utilities.

WHAT: Process-wide logging setup and per-module loggers
WHY: Every component logs transitions, fallbacks and failures the same way
HOW: stdlib logging; console + file handlers on the root logger, replaced
     (not duplicated) when another app instance is configured
"""

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..core.config import Settings

CONSOLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
FILE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(pathname)s:%(lineno)d - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Marker attribute for handlers installed here
_OWNED = "_negotiator_handler"


def _owned_handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=DATE_FORMAT))
    setattr(handler, _OWNED, True)
    return handler


def setup_logging(settings: "Settings"):
    """
    Configure application logging from LOG_LEVEL and LOG_FILE.

    Safe to call once per app instance; handlers from an earlier call are
    closed and replaced.
    """
    log_file = Path(settings.LOG_FILE)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for handler in list(root_logger.handlers):
        if getattr(handler, _OWNED, False):
            root_logger.removeHandler(handler)
            handler.close()

    root_logger.addHandler(_owned_handler(logging.StreamHandler(sys.stdout), logging.INFO, CONSOLE_FORMAT))
    root_logger.addHandler(_owned_handler(logging.FileHandler(log_file), logging.DEBUG, FILE_FORMAT))

    root_logger.info(f"Logging initialized (level={settings.LOG_LEVEL}, file={log_file})")


def get_logger(name: str) -> logging.Logger:
    """Logger for a module; pass __name__."""
    return logging.getLogger(name)
