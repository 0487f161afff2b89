"""Process-wide logging setup for the allocation service.

Every module logs through ``get_logger(__name__)``; records are written to
stdout as ``timestamp | level | logger | message`` so the pipe-separated
``key=value`` pairs used by the services stay greppable.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

from residence.utils.config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
ROOT_LOGGER_NAME = "residence"

_LOGGER_INITIALIZED = False


def resolve_level(level: str) -> int:
    """Map a level name such as ``"info"`` to its numeric value."""
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"RESIDENCE_LOG_LEVEL has unknown value: {level!r}")
    return resolved


def configure_logging(level: Optional[str] = None) -> None:
    global _LOGGER_INITIALIZED
    if _LOGGER_INITIALIZED:
        return

    resolved_level = resolve_level(level or get_settings().log_level)
    logging.basicConfig(level=resolved_level, format=LOG_FORMAT, stream=sys.stdout)
    logging.getLogger(ROOT_LOGGER_NAME).setLevel(resolved_level)
    _LOGGER_INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
