from __future__ import annotations

import logging
import os
from typing import Union

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL_ENV = "WARBAND_LOG_LEVEL"


def resolve_level(default_level: Union[int, str] = logging.INFO) -> int:
    """Level from WARBAND_LOG_LEVEL if set and valid, else ``default_level``."""
    raw = os.environ.get(LOG_LEVEL_ENV)
    for candidate in (raw, default_level):
        if candidate is None:
            continue
        if isinstance(candidate, int):
            return candidate
        level = logging.getLevelName(str(candidate).strip().upper())
        if isinstance(level, int):
            return level
    return logging.INFO


def configure_logging(default_level: Union[int, str] = logging.INFO) -> int:
    """Configure root logging for embedding applications. Returns the level used."""
    level = resolve_level(default_level)
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)
    logging.getLogger("warband").setLevel(level)
    return level
