"""Centralized logging setup for the receipt extraction pipeline.

Every module logs through a named logger obtained from ``get_logger``;
``setup_logging`` is called once by the entry point.
"""

import logging
import sys
from typing import TextIO

# Pillow logs every decoded chunk at DEBUG level.
_NOISY_LOGGERS: tuple[str, ...] = ("PIL", "PIL.PngImagePlugin", "PIL.TiffImagePlugin")


def setup_logging(level: str = "INFO", stream: TextIO | None = None) -> None:
    """Configure the root logger with a standard format.

    Args:
        level: Logging level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        stream: Output stream, stderr by default so CLI JSON on stdout
            stays clean.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()

    if root.handlers:
        return

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.INFO))


def get_logger(name: str) -> logging.Logger:
    """Get a named logger instance.

    Args:
        name: Logger name, typically ``__name__`` of the calling module.

    Returns:
        Logger instance.
    """
    return logging.getLogger(name)
