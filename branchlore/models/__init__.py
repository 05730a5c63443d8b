"""Data models for branchlore."""

from .branch import Branch, BranchStatus, RepositoryState
from .merge import MergeResult
from .query import QueryResult
from .worktree import Worktree

__all__ = [
    "Branch",
    "BranchStatus",
    "RepositoryState",
    "MergeResult",
    "QueryResult",
    "Worktree",
]
