"""Git services for branchlore.

This package contains everything that talks to git:
- backend: the narrow backend interface and its factory
- gitpython_backend / subprocess_backend: the two backend variants
- repository: the repository store (initialization and branch references)
- worktrees: lazy per-branch worktree provisioning
- merge: branch merges with conflict detection
"""

from .backend import GitBackend, GitResult, RefInfo, create_backend
from .gitpython_backend import GitPythonBackend
from .merge import MergeEngine, parse_conflicts
from .repository import RepositoryStore
from .subprocess_backend import SubprocessBackend
from .worktrees import WorktreeProvisioner, parse_worktree_porcelain

__all__ = [
    "GitBackend",
    "GitResult",
    "RefInfo",
    "create_backend",
    "GitPythonBackend",
    "SubprocessBackend",
    "RepositoryStore",
    "WorktreeProvisioner",
    "parse_worktree_porcelain",
    "MergeEngine",
    "parse_conflicts",
]
