"""Worktree provisioning: one checked-out directory per branch."""

import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from branchlore.exceptions import BranchNotFoundError, RepositoryIOError, WorktreeCreationError
from branchlore.models.worktree import Worktree
from branchlore.paths import validate_branch_name, worktree_path
from branchlore.services.git.backend import GitBackend
from branchlore.services.git.repository import RepositoryStore
from branchlore.services.storage_service import FileSystem
from branchlore.utils.logging import get_logger
from branchlore.utils.threading import KeyedLock

logger = get_logger(__name__)


def parse_worktree_porcelain(output: str) -> List[Worktree]:
    """Parse ``git worktree list --porcelain``.

    Format, one block per worktree separated by blank lines:
        worktree /path/to/worktree
        HEAD commit_sha
        branch refs/heads/branch-name   (or "detached")

    The first block is always the primary working copy.
    """
    worktrees: List[Worktree] = []
    current: Dict[str, Any] = {}

    def flush():
        if current.get("path"):
            worktrees.append(
                Worktree(
                    path=current["path"],
                    branch_name=current.get("branch", ""),
                    revision=current.get("HEAD", ""),
                    is_primary=not worktrees,
                )
            )
        current.clear()

    for line in output.split("\n"):
        line = line.strip()
        if not line:
            flush()
            continue

        if line.startswith("worktree "):
            current["path"] = line.split(" ", 1)[1]
        elif line.startswith("HEAD "):
            current["HEAD"] = line.split(" ", 1)[1]
        elif line.startswith("branch "):
            ref = line.split(" ", 1)[1]
            current["branch"] = ref[len("refs/heads/"):] if ref.startswith("refs/heads/") else ""
        elif line == "detached":
            current["branch"] = ""

    # Last entry if no trailing blank line
    flush()
    return worktrees


class WorktreeProvisioner:
    """Materializes branch worktrees on demand."""

    def __init__(
        self,
        backend: GitBackend,
        store: RepositoryStore,
        storage: FileSystem,
        repo_lock: threading.RLock,
        branch_locks: Optional[KeyedLock] = None,
        auto_create_branches: bool = False,
    ):
        """Initialize the provisioner.

        Args:
            backend: Git backend bound to the repository root
            store: Repository store, used for branch lookups and auto-creation
            storage: Filesystem helper for worktree directories
            repo_lock: Repository-wide lock shared with the other components
            branch_locks: Per-branch locks guarding check-then-create
            auto_create_branches: Create missing branches at trunk instead of failing
        """
        self.backend = backend
        self.store = store
        self.storage = storage
        self._repo_lock = repo_lock
        self._branch_locks = branch_locks or KeyedLock()
        self.auto_create_branches = auto_create_branches
        # Branches whose worktree add finished in this process
        self._provisioned: Set[str] = set()

    @property
    def base_path(self) -> Path:
        return self.backend.repo_path / self.store.worktree_base

    def worktree_path(self, branch: str) -> Path:
        return worktree_path(self.backend.repo_path, self.store.worktree_base, branch)

    def ensure_worktree(self, branch: str) -> Path:
        """Return the worktree directory of ``branch``, creating it if needed.

        A finished worktree is returned without touching git. A directory
        that git is still populating is not finished: callers wait on the
        branch lock until the add completes.

        Raises:
            BranchNotFoundError: If the branch is missing and auto-creation is off
            WorktreeCreationError: If git cannot add the worktree
        """
        validate_branch_name(branch)
        path = self.worktree_path(branch)
        if branch in self._provisioned and self._is_worktree(path):
            return path

        with self._branch_locks.hold(branch):
            # Another caller may have finished while we waited, or an earlier
            # process left a worktree behind
            if self._is_worktree(path):
                self._provisioned.add(branch)
                return path

            with self._repo_lock:
                if not self.store.branch_exists(branch):
                    if not self.auto_create_branches:
                        raise BranchNotFoundError(branch)
                    self.store.create_branch(branch)
                    logger.debug(f"Auto-created branch {branch}")

                # Drop registrations whose directories were removed by hand
                self.backend.prune_worktrees()
                try:
                    self.storage.ensure_dir(path.parent)
                except RepositoryIOError as e:
                    raise WorktreeCreationError(branch, e.message) from e

                result = self.backend.add_worktree(path, branch)
                if not result.ok:
                    raise WorktreeCreationError(branch, result.output)
            self._provisioned.add(branch)

        logger.debug(f"Provisioned worktree for {branch} at {path}")
        return path

    def list_worktrees(self) -> List[Worktree]:
        """All worktrees git knows about, primary first."""
        worktrees = parse_worktree_porcelain(self.backend.list_worktrees_porcelain())
        logger.debug(f"Found {len(worktrees)} worktrees")
        return worktrees

    def find_worktree(self, branch: str) -> Optional[Worktree]:
        """The provisioned (non-primary) worktree holding ``branch``, if any."""
        for worktree in self.list_worktrees():
            if not worktree.is_primary and worktree.branch_name == branch:
                return worktree
        return None

    def remove_worktree(self, branch: str) -> bool:
        """Remove the worktree of ``branch`` and its directory.

        Returns:
            True if a worktree or directory was removed
        """
        path = self.worktree_path(branch)
        removed = False

        with self._repo_lock:
            self._provisioned.discard(branch)
            worktree = self.find_worktree(branch)
            if worktree is not None:
                result = self.backend.remove_worktree(worktree.path)
                if not result.ok:
                    raise RepositoryIOError("worktree_remove", result.describe(), result.output)
                removed = True

            if path.exists():
                self.storage.cleanup(path)
                removed = True

            self._remove_empty_parents(path)
            self.backend.prune_worktrees()

        if removed:
            logger.debug(f"Removed worktree for {branch}")
        return removed

    @staticmethod
    def _is_worktree(path: Path) -> bool:
        return (path / ".git").exists()

    def _remove_empty_parents(self, path: Path) -> None:
        """Remove directories left empty by a nested branch name (a/b/c)."""
        base = self.base_path
        parent = path.parent
        while parent != base and base in parent.parents:
            try:
                os.rmdir(parent)
            except OSError:
                # Not empty, or already gone
                break
            parent = parent.parent
