"""
Shared utilities for Blockflow
"""
from .logger import get_logger, setup_logger
from .serialization import make_serializable

__all__ = ["get_logger", "setup_logger", "make_serializable"]
