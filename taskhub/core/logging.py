# taskhub/core/logging.py

import logging
import sys
from typing import Dict


DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Third-party loggers and the level they are capped at
LIBRARY_LEVELS: Dict[str, int] = {
    "redis": logging.WARNING,
    "google.cloud.pubsub_v1": logging.WARNING,
    "google.api_core": logging.WARNING,
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.WARNING,
}


def setup_logging(level_name: str = "INFO", fmt: str = DEFAULT_FORMAT) -> None:
    """
    Configure application-wide logging.

    - Root level from ``level_name`` (settings.LOG_LEVEL; unknown names fall back to INFO)
    - Logs go to stdout so the container runtime picks them up
    - Library loggers listed in LIBRARY_LEVELS are toned down

    Safe to call more than once; when a handler is already installed
    (e.g. by Uvicorn) only the level is updated.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    if root_logger.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt))
    root_logger.addHandler(handler)

    for name, library_level in LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Usage:
        from taskhub.core.logging import get_logger

        logger = get_logger(__name__)
    """
    return logging.getLogger(name)
