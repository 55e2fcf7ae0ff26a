"""Utility modules for briefops."""

from .logger import LogCategory, configure_logging, get_logger


__all__ = [
    "LogCategory",
    "configure_logging",
    "get_logger",
]
