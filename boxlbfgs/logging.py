"""Logging utilities for boxlbfgs.

The driver and the reference step routine report progress through loggers
created here, so the solver never writes to stdout on its own.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

_DEFAULT_LEVEL = logging.WARNING
_FORMAT = "[%(levelname)s] %(name)s: %(message)s"
_stream: Optional[object] = None
_format: str = _FORMAT

_loggers: dict[str, logging.Logger] = {}


def _as_level(level: int | str) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.WARNING)
    return level


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get or create a logger under the ``boxlbfgs`` namespace.

    Loggers are cached so repeated calls do not stack handlers.

    Args:
        name: Logger name (typically ``__name__``). If None, returns the
            package logger.

    Returns:
        Configured logger instance.

    Example:
        >>> from boxlbfgs.logging import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("line search restarted")
    """
    if name is None:
        name = "boxlbfgs"

    logger_name = name if name.startswith("boxlbfgs") else f"boxlbfgs.{name}"

    if logger_name in _loggers:
        return _loggers[logger_name]

    logger = logging.getLogger(logger_name)

    if not logger.handlers:
        logger.setLevel(_DEFAULT_LEVEL)
        handler = logging.StreamHandler(_stream or sys.stderr)
        handler.setLevel(_DEFAULT_LEVEL)
        handler.setFormatter(logging.Formatter(_format))
        logger.addHandler(handler)
        logger.propagate = False

    _loggers[logger_name] = logger
    return logger


def set_log_level(level: int | str) -> None:
    """Set the logging level for all boxlbfgs loggers.

    Args:
        level: Logging level (``logging.INFO``...) or its name (``"INFO"``).
    """
    global _DEFAULT_LEVEL
    level = _as_level(level)

    for logger in _loggers.values():
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)

    _DEFAULT_LEVEL = level


def configure_logging(
    level: int | str = logging.WARNING,
    format_string: Optional[str] = None,
    stream: Optional[object] = None,
) -> None:
    """Configure level, format and output stream of every boxlbfgs logger.

    Call this once at application startup, e.g. with ``level="INFO"`` to see
    the iteration reports requested through ``print_level``.

    Args:
        level: Logging level (default: WARNING).
        format_string: Custom format string. If None, uses the default.
        stream: Output stream (default: sys.stderr).
    """
    global _DEFAULT_LEVEL, _stream, _format
    level = _as_level(level)

    if stream is None:
        stream = sys.stderr
    formatter = logging.Formatter(format_string or _FORMAT)

    for logger in _loggers.values():
        logger.setLevel(level)
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
        handler = logging.StreamHandler(stream)
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    _DEFAULT_LEVEL = level
    _stream = stream
    _format = format_string or _FORMAT
