"""Process-wide logging configuration for command entry points."""

from __future__ import annotations

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

LOGGER_NAME = "crocodile"
LOG_FILE_NAME = "croc.log"

_STDERR_FORMAT = "%(levelname)s %(message)s"
_VERBOSE_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d %(message)s"


def level_for_verbosity(verbosity: int) -> int:
    if verbosity <= 0:
        return logging.WARNING
    if verbosity == 1:
        return logging.INFO
    return logging.DEBUG


def configure_logging(
    verbosity: int = 0,
    *,
    logs_dir: Path | None = None,
    level_override: str | None = None,
) -> logging.Logger:
    """Attach stderr and optional daily-rotated file handlers to the package logger.

    ``level_override`` (``CROC_LOG_LEVEL``) wins over the ``-v`` count. The
    file handler is only added when ``logs_dir`` already exists.
    """

    level = (
        logging.getLevelNamesMapping()[level_override.upper()]
        if level_override
        else level_for_verbosity(verbosity)
    )
    package_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(min(level, logging.INFO) if logs_dir is not None else level)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(
        logging.Formatter(_VERBOSE_FORMAT if verbosity > 1 else _STDERR_FORMAT),
    )
    package_logger.addHandler(stderr_handler)

    if logs_dir is not None and logs_dir.is_dir():
        file_handler = TimedRotatingFileHandler(
            logs_dir / LOG_FILE_NAME,
            when="midnight",
            utc=True,
            encoding="utf-8",
        )
        file_handler.setLevel(min(level, logging.INFO))
        file_handler.setFormatter(logging.Formatter(_VERBOSE_FORMAT))
        package_logger.addHandler(file_handler)

    return package_logger
