"""Diagnostics logging via Loguru.

The package disables its own logger on import (see ``__init__``), so an
embedding application sees nothing until it opts in:

    from dlp_masker.log import setup_logging
    sink_id = setup_logging("DEBUG")
"""

from __future__ import annotations
import sys
from typing import Any

from loguru import logger

_PACKAGE = "dlp_masker"

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


def setup_logging(level: str = "INFO", sink: Any = None, *, serialize: bool = False) -> int:
    """Enable package diagnostics and attach one sink.  Returns the sink id."""
    logger.enable(_PACKAGE)
    return logger.add(
        sink if sink is not None else sys.stderr,
        level=level.upper(),
        format=LOG_FORMAT,
        filter=_PACKAGE,
        serialize=serialize,
    )


def reset_logging(sink_id: int) -> None:
    """Detach a sink added by ``setup_logging`` and silence the package again."""
    logger.remove(sink_id)
    logger.disable(_PACKAGE)
