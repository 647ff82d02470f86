"""Console and rotating-file logging for the CLI."""

import logging
from logging.handlers import RotatingFileHandler

from rich.console import Console
from rich.logging import RichHandler

from pg_backup_tool.config.models import LoggingSettings

PACKAGE_LOGGER = "pg_backup_tool"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(
    settings: LoggingSettings,
    debug: bool = False,
    console: Console | None = None,
) -> logging.Logger:
    """Attach handlers to the package logger.

    Console output goes through ``RichHandler``.  When ``settings.file`` is
    set, records are also written to a size-rotated log file.

    Args:
        settings: Level, file path and rotation limits.
        debug: Force DEBUG level regardless of ``settings.level``.
        console: Rich console to log to (default: stderr).

    Returns:
        The configured ``pg_backup_tool`` logger.
    """
    level = logging.DEBUG if debug else logging.getLevelName(settings.level)
    if not isinstance(level, int):
        level = logging.INFO

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.addHandler(
        RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=debug,
        )
    )

    if settings.file is not None:
        settings.file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            settings.file,
            maxBytes=settings.max_size_mb * 1024 * 1024,
            backupCount=settings.max_backups,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    return logger
