"""
Logging setup for influxschema.
"""

import logging
import logging.handlers

from .config import LoggingConfig


PACKAGE_LOGGER = "influxschema"


def configure_logging(config: LoggingConfig, debug: bool = False) -> logging.Logger:
    """
    Attach handlers to the package logger according to ``config``.

    Calling this more than once replaces previously installed handlers.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    level = logging.DEBUG if debug else getattr(logging, config.level)
    logger.setLevel(level)
    formatter = logging.Formatter(config.format)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if config.file:
        file_handler = logging.handlers.RotatingFileHandler(
            config.file,
            maxBytes=config.max_size,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
