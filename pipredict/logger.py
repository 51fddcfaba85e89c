import logging
import sys
from typing import Optional

from .config import get_settings


def setup_logger(name: str = "pipredict", level: Optional[str] = None) -> logging.Logger:
    """Configure the application logger and return it.

    Args:
        name: logger name; module loggers under it inherit the handler
        level: log level name, defaults to the configured ``log_level``
    """
    if level is None:
        level = get_settings().log_level

    log_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    # avoid duplicate output when called twice
    if logger.handlers:
        logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] [%(name)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)
    return logger
