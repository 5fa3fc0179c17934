"""
Logging setup for cardwise.

Console output comes from the root handler configured by the CLI or server.
This module sets the package log level from the configured verbosity and
adds a rotating log file under the configured log directory.
"""

import logging
import logging.handlers

from cardwise.application.config import AppConfig

LOG_FILE = "cardwise.log"

_file_handler: logging.Handler | None = None


def level_for(verbose: int) -> int:
    """1 is the default (warnings), 2 adds info, 3 or more adds debug."""
    if verbose >= 3:
        return logging.DEBUG
    if verbose == 2:
        return logging.INFO
    return logging.WARNING


def setup_logging(config: AppConfig) -> logging.Logger:
    """
    Configure the ``cardwise`` logger from the resolved config.

    Safe to call more than once; the previous log file handler is replaced.

    Returns:
        The configured package logger.
    """
    global _file_handler

    level = level_for(config.verbose)
    logger = logging.getLogger("cardwise")
    logger.setLevel(level)

    if _file_handler is not None:
        logger.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None

    config.log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        config.log_dir / LOG_FILE,
        maxBytes=1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )
    )
    logger.addHandler(handler)
    _file_handler = handler

    logger.debug(f"Logging initialized: level={logging.getLevelName(level)}, dir={config.log_dir}")
    return logger
