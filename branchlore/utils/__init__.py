"""Utility functions for branchlore.

This package provides utility modules:
- logging: Logging configuration and logger creation
- threading: Per-key locking used to serialize worktree provisioning
"""

from .logging import setup_logging, get_logger, ColoredFormatter
from .threading import KeyedLock

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "ColoredFormatter",
    # Threading
    "KeyedLock",
]
