"""Logging setup for the command line entry points."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from sortwise.config import LOG_FILENAME
from sortwise.config.models import LoggingSettings

_HANDLER_MARKER = "_sortwise_handler"


def configure_logging(
    settings: LoggingSettings,
    log_dir: Optional[Path] = None,
    *,
    console: Optional[Console] = None,
) -> None:
    """Attach console and rotating file handlers to the ``sortwise`` logger.

    Calling this again replaces the handlers installed by a previous call.

    Args:
        settings: Level and rotation settings.
        log_dir: Directory for the rotating log file; no file is written when omitted.
        console: Rich console to render to; defaults to stderr.
    """
    logger = logging.getLogger("sortwise")
    level = logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.WARNING

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    rich_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    rich_handler.setLevel(level)
    setattr(rich_handler, _HANDLER_MARKER, True)
    logger.addHandler(rich_handler)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / LOG_FILENAME,
            maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        setattr(file_handler, _HANDLER_MARKER, True)
        logger.addHandler(file_handler)

    logger.setLevel(min(level, logging.DEBUG) if log_dir is not None else level)


__all__ = ["LOG_FILENAME", "configure_logging"]
