from __future__ import annotations

import logging
import os
import sys
from typing import TextIO

_LOG_LEVEL_ENV = "DEVKIT_LOG_LEVEL"
_HANDLER_NAME = "devkit-stderr"


def _level_from_env(default: int = logging.INFO) -> int:
    raw = os.environ.get(_LOG_LEVEL_ENV)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().upper()
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value)
    return level if isinstance(level, int) else default


def configure_logging(level: int | str | None = None, *, stream: TextIO | None = None) -> logging.Logger:
    """Attach one stderr handler to the root logger; repeated calls only adjust the level."""
    if level is None:
        resolved = _level_from_env()
    elif isinstance(level, str):
        named = logging.getLevelName(level.strip().upper())
        resolved = named if isinstance(named, int) else logging.INFO
    else:
        resolved = level

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved)

    if any(handler.get_name() == _HANDLER_NAME for handler in root_logger.handlers):
        return root_logger

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root_logger.addHandler(handler)
    return root_logger
