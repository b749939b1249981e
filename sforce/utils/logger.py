import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def create_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Create (or fetch) a named logger with a single stdout handler.

    The level defaults to the SFORCE_LOG_LEVEL environment variable, then INFO.
    Calling this twice with the same name does not stack handlers.
    """
    logger = logging.getLogger(name)
    level_name = (level or os.getenv("SFORCE_LOG_LEVEL", "INFO")).upper()
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    return logger
