"""Logging configuration for the modelshelf CLI and services."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from modelshelf.config.models import LoggingSettings

_HANDLER_FLAG = "_modelshelf_handler"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(
    settings: LoggingSettings,
    *,
    console: Console | None = None,
    level_override: str | None = None,
) -> logging.Logger:
    """Attach console and rotating-file handlers to the ``modelshelf`` logger.

    Calling this more than once replaces the handlers installed previously.

    Args:
        settings: Logging section of the loaded configuration.
        console: Console the rich handler writes to (stderr by default).
        level_override: Level name that takes precedence over ``settings.level``.

    Returns:
        logging.Logger: The configured package logger.
    """
    logger = logging.getLogger("modelshelf")
    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_FLAG, False):
            logger.removeHandler(handler)
            handler.close()

    level_name = (level_override or settings.level).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING
    logger.setLevel(level)
    logger.propagate = False

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
    )
    setattr(rich_handler, _HANDLER_FLAG, True)
    logger.addHandler(rich_handler)

    if settings.file:
        log_path = Path(settings.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
            backupCount=max(0, settings.backup_count),
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        setattr(file_handler, _HANDLER_FLAG, True)
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging"]
