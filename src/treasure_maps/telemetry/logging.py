"""Logging sinks for the engine: rich console output plus an optional debug file."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.logging import RichHandler

LOGGER_NAME = "treasure_maps"
_FILE_FORMAT = "[%(asctime)s.%(msecs)03d] %(levelname)s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO", debug_log_path: str | Path | None = None) -> logging.Logger:
    """Attach console (and file) handlers to the package logger once."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if debug_log_path else level.upper())

    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        console = RichHandler(rich_tracebacks=True, show_path=False)
        console.setLevel(level.upper())
        logger.addHandler(console)

    if debug_log_path:
        path = Path(debug_log_path).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        already_attached = any(
            isinstance(handler, logging.FileHandler) and Path(handler.baseFilename) == path.resolve()
            for handler in logger.handlers
        )
        if not already_attached:
            file_handler = logging.FileHandler(path, encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
            logger.addHandler(file_handler)

    return logger
