"""Logging helpers built on loguru.

The package disables its own records on import (the loguru convention for
libraries); applications opt in with :func:`configure_logging`.
"""
from __future__ import annotations
import sys
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    import loguru

_FORMAT = "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | {extra[name]} - {message}"


def get_logger(name: str) -> "loguru.Logger":
    return logger.bind(name=name)


def configure_logging(level: str = "WARNING", sink: Any = sys.stderr) -> None:
    """Route hopread records at ``level`` and above to ``sink``."""
    logger.remove()
    logger.add(sink, level=level.upper(), format=_FORMAT, filter="hopread")
    logger.enable("hopread")


def disable_logging() -> None:
    logger.disable("hopread")
