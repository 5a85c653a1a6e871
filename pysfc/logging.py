"""
Logging for pysfc.

Records are written by the package logger ``pysfc`` and carry the dilation
block that emitted them, so output from the worker threads of one
decomposition can be told apart. Records logged outside a worker show
``-`` as their block.

The level is read from ``PYSFC_LOG_LEVEL`` (default INFO).
"""

from __future__ import annotations

import contextvars
import logging
import os
import sys
import time
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

F = TypeVar("F", bound=Callable[..., Any])

LOG_LEVEL_ENV = "PYSFC_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [block %(block)s]: %(message)s"

# Each worker thread runs in its own context, so the value is per thread
_current_block: contextvars.ContextVar = contextvars.ContextVar("pysfc_block", default="-")


# =============================================================================
# Block Context
# =============================================================================


class BlockContextFilter(logging.Filter):
    """Stamp every record with the dilation block of the emitting thread"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.block = _current_block.get()
        return True


@contextmanager
def block_context(block_id: int):
    """Attribute records logged inside the ``with`` body to ``block_id``."""
    token = _current_block.set(block_id)
    try:
        yield
    finally:
        _current_block.reset(token)


# =============================================================================
# Logger Setup
# =============================================================================

_package_logger: Optional[logging.Logger] = None


def setup_logging(level: Optional[int] = None, force: bool = False) -> logging.Logger:
    """Attach a stderr handler to the package logger.

    Args:
        level: Log level, defaults to ``PYSFC_LOG_LEVEL`` or INFO.
        force: Replace the handler installed by an earlier call.

    Returns:
        The package logger.
    """
    global _package_logger

    if _package_logger is not None and not force:
        return _package_logger

    logger = logging.getLogger("pysfc")
    for handler in list(logger.handlers):
        if any(isinstance(f, BlockContextFilter) for f in handler.filters):
            logger.removeHandler(handler)
            handler.close()

    if level is None:
        level_name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
        level = getattr(logging, level_name, logging.INFO)
    logger.setLevel(level)
    logger.propagate = False

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(BlockContextFilter())
    logger.addHandler(handler)

    _package_logger = logger
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Package logger, or its child ``pysfc.<name>``."""
    logger = setup_logging()
    return logger.getChild(name) if name else logger


def LOG_DEBUG(msg: str, *args: Any, **kwargs: Any) -> None:
    get_logger().debug(msg, *args, **kwargs)


def LOG_INFO(msg: str, *args: Any, **kwargs: Any) -> None:
    get_logger().info(msg, *args, **kwargs)


# =============================================================================
# Timing
# =============================================================================


@contextmanager
def profile_scope(name: str):
    """Log the wall time of the ``with`` body at DEBUG, also when it raises.

    Example:
        with profile_scope("threading"):
            run_workers()
    """
    start_time = time.perf_counter()
    try:
        yield
    finally:
        LOG_DEBUG("%s took %.2f ms", name, (time.perf_counter() - start_time) * 1e3)


def timed(func: F) -> F:
    """Decorator form of ``profile_scope`` named after ``func``."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        with profile_scope(func.__qualname__):
            return func(*args, **kwargs)

    return wrapper  # type: ignore


setup_logging()
