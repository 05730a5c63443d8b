"""Core functionality for branchlore."""

from .branch_repository import BranchRepositoryManager

__all__ = ["BranchRepositoryManager"]
