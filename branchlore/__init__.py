"""
branchlore - Git-style branching for SQLite databases
"""

from .__version__ import __version__
from .config import Config
from .core import BranchRepositoryManager

__all__ = ["BranchRepositoryManager", "Config", "__version__"]
