"""Logging configuration."""

import logging
import os
import sys

from pydantic import BaseModel

NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


class LogConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    quiet_loggers: tuple[str, ...] = NOISY_LOGGERS
    quiet_level: str = "WARNING"


def setup_logging(config: LogConfig | None = None) -> None:
    """Configure root logging for the service and CLI."""
    if config is None:
        config = LogConfig(level=os.getenv("LOG_LEVEL", "INFO"))

    logging.basicConfig(
        level=logging.getLevelName(config.level.upper()),
        format=config.format,
        datefmt=config.date_format,
        stream=sys.stdout,
        force=True,  # Override any existing configuration
    )

    for name in config.quiet_loggers:
        logging.getLogger(name).setLevel(config.quiet_level)

    # Module loggers created before setup keep their own level; bring ours in line.
    for name, existing in list(logging.root.manager.loggerDict.items()):
        if name.startswith("vaultpilot") and isinstance(existing, logging.Logger):
            existing.setLevel(config.level.upper())


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Get a module logger.

    Args:
        name: Module name (typically __name__)
        level: Explicit level, overrides the LOG_LEVEL environment variable
    """
    logger = logging.getLogger(name)
    logger.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    return logger
