"""Core utilities for the enhancer application."""

from enhancer.app.core.config import Settings, settings
from enhancer.app.core.logging import get_logger, setup_logging

__all__ = [
    "Settings",
    "settings",
    "get_logger",
    "setup_logging",
]
