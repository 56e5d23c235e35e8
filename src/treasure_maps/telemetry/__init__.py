"""Logging setup and timing helpers."""

from .logging import configure_logging
from .timing import timed

__all__ = ["configure_logging", "timed"]
