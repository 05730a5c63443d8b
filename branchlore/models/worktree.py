"""Worktree data models."""

from dataclasses import dataclass


@dataclass
class Worktree:
    """Information about a git worktree."""

    path: str
    branch_name: str  # Empty for a detached working copy
    revision: str
    is_primary: bool  # Is this the repository's own working copy?

    def __str__(self) -> str:
        """String representation of worktree."""
        primary_marker = " (primary)" if self.is_primary else ""
        branch = self.branch_name or "(detached)"
        return f"{branch} @ {self.path}{primary_marker}"
