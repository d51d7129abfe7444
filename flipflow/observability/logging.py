"""
Logger factory for Flip Flow.

Every module does ``logger = get_logger(__name__)``. The first call attaches a
single stream handler to the root logger; later calls only re-read the level
so ``FLIPFLOW_LOG_LEVEL`` changes made by tests are honoured.
"""

from __future__ import annotations

import logging
import os
from typing import Final

_HANDLER_ATTACHED: bool = False
_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"


def _resolve_level() -> int:
    level_name = os.getenv("FLIPFLOW_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def _attach_root_handler(level: int) -> None:
    global _HANDLER_ATTACHED

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level)
    _HANDLER_ATTACHED = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger sharing the single root stream handler."""
    level = _resolve_level()

    if not _HANDLER_ATTACHED:
        _attach_root_handler(level)
    else:
        logging.getLogger().setLevel(level)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
