"""
Logging utilities for configdb.

Module loggers are children of the "configdb" package logger. Only the
package logger owns handlers; children propagate to it.
"""

import functools
import logging
import sys
import time
from typing import TYPE_CHECKING, Callable, Optional, TypeVar

if TYPE_CHECKING:
    from config import Settings


PACKAGE_LOGGER = "configdb"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Handlers installed by setup_logger, per logger name
_handlers: dict = {}

F = TypeVar("F", bound=Callable)


def setup_logger(
    name: str = PACKAGE_LOGGER,
    level: str = "INFO",
    format_string: Optional[str] = None,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Attach a stdout handler (and optionally a file handler) to a logger.

    Calling it again replaces the handlers installed by the previous call
    and leaves any other handler alone.

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_string: Custom format string
        log_file: Optional file path for logging

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())

    for handler in _handlers.pop(name, []):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(format_string or DEFAULT_FORMAT, datefmt=DEFAULT_DATE_FORMAT)
    installed = [logging.StreamHandler(sys.stdout)]
    if log_file:
        installed.append(logging.FileHandler(log_file))

    for handler in installed:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    _handlers[name] = installed
    return logger


def configure_logging(settings: "Settings", log_file: Optional[str] = None) -> logging.Logger:
    """Configure the package logger from the log_level setting."""
    return setup_logger(PACKAGE_LOGGER, settings.log_level, log_file=log_file)


def get_logger(name: str = PACKAGE_LOGGER) -> logging.Logger:
    """
    Logger for a configdb module.

    The package logger gets its default handler on first use.
    """
    if PACKAGE_LOGGER not in _handlers:
        setup_logger(PACKAGE_LOGGER)
    return logging.getLogger(name)


def log_enter_exit(logger: logging.Logger) -> Callable[[F], F]:
    """
    Decorator tracing entry and exit of a data-access call at DEBUG level.

    Example:
        >>> @log_enter_exit(logger)
        ... def find_for_customer(self, scope, find_options=None):
        ...     ...
    """
    def decorator(func: F) -> F:
        name = func.__qualname__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger.debug(f"enter {name}")
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - start) * 1000
                logger.debug(f"exit {name} ({elapsed_ms:.2f}ms)")

        return wrapper  # type: ignore[return-value]

    return decorator


class LogContext:
    """Temporarily change a logger's level, e.g. to trace one call at DEBUG."""

    def __init__(self, logger: logging.Logger, level: str):
        self.logger = logger
        self.level = level.upper()
        self._saved = logger.level

    def __enter__(self) -> logging.Logger:
        self._saved = self.logger.level
        self.logger.setLevel(self.level)
        return self.logger

    def __exit__(self, *args) -> None:
        self.logger.setLevel(self._saved)
