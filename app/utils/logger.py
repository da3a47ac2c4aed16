"""Logging configuration for the KermHost backend."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from app.utils.environment import is_debug

LOGGER_NAME = "kermhost"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"


def setup_logger(
    name: str = LOGGER_NAME,
    log_file: str | None = None,
    log_level: str | None = None,
) -> logging.Logger:
    """Configure and return the application logger.

    Console output is always enabled. A rotating file handler is added when
    ``log_file`` is given or ``LOG_FILE`` is set.

    Args:
        name: Logger name
        log_file: Path of the log file
        log_level: Level name, defaults to LOG_LEVEL or DEBUG/INFO depending on env
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "DEBUG" if is_debug() else "INFO")
    level = getattr(logging, log_level.upper(), logging.INFO)

    log = logging.getLogger(name)
    log.setLevel(level)

    if log.handlers:
        return log

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    log.addHandler(console_handler)

    log_file = log_file or os.getenv("LOG_FILE")
    if log_file:
        try:
            Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            log.addHandler(file_handler)
        except OSError as e:
            log.warning(f"Could not open log file {log_file}: {e}")

    log.propagate = False
    return log


logger = setup_logger()


def get_logger(name: str) -> logging.Logger:
    """Child logger, e.g. get_logger("ledger") -> 'kermhost.ledger'."""
    return logging.getLogger(f"{LOGGER_NAME}.{name}")
