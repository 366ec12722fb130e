"""
Logging configuration for Blockflow
One stdout handler per logger, level taken from Config.DEBUG unless given
"""
import logging
import sys
from typing import Optional

LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def setup_logger(name: str = "blockflow", level: Optional[int] = None) -> logging.Logger:
    """
    Configure a blockflow logger (idempotent)

    Args:
        name: Logger name (default: "blockflow")
        level: Log level (default: INFO, or DEBUG if Config.DEBUG is True)
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    if level is None:
        # Imported here to avoid a circular import (config logs through us)
        from ..core.config import Config
        level = logging.DEBUG if Config.DEBUG else logging.INFO
    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger named after the last component of a module path (typically __name__)"""
    return setup_logger(f"blockflow.{name.rsplit('.', 1)[-1]}")
