"""Logging setup for logbridge."""

import logging
from logging.handlers import RotatingFileHandler

from rich.console import Console
from rich.logging import RichHandler


LOGGER_NAME = "logbridge"
FILE_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_installed: list[logging.Handler] = []


def setup_logging(
    level: str | int = "INFO",
    log_file: str | None = None,
    console: Console | None = None,
    max_bytes: int = 10485760,
    backup_count: int = 3,
) -> logging.Logger:
    """
    Attach console (and optional rotating file) handlers to the package logger.

    Calling it again replaces the handlers installed by the previous call, so
    the host application can change the level at runtime.

    Args:
        level: Level name or number
        log_file: Optional path for a rotating log file
        console: Rich console to render to (defaults to stderr)
        max_bytes: Rotate the log file after this many bytes
        backup_count: Number of rotated files to keep

    Returns:
        The configured ``logbridge`` logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    for handler in _installed:
        logger.removeHandler(handler)
        handler.close()
    _installed.clear()

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(level)
    _installed.append(console_handler)

    if log_file:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        _installed.append(file_handler)

    for handler in _installed:
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger
