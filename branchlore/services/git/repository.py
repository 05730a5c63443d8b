"""Repository store: the git repository and its branch references."""

from pathlib import Path
from typing import List, Optional, Union

from branchlore.constants import INITIAL_COMMIT_MESSAGE, SQLITE_SIDE_FILE_SUFFIXES
from branchlore.exceptions import (
    BranchExistsError,
    BranchNotFoundError,
    BranchProtectedError,
    NoCommitsError,
)
from branchlore.models.branch import Branch
from branchlore.paths import validate_branch_name
from branchlore.services.git.backend import GitBackend
from branchlore.utils.logging import get_logger

logger = get_logger(__name__)


class RepositoryStore:
    """Owns the on-disk repository and the branch references in it.

    The store does no locking of its own; callers serialize mutations with
    the repository-wide lock.
    """

    def __init__(self, backend: GitBackend, trunk: str, worktree_base: str, db_filename: str):
        """Initialize the store.

        Args:
            backend: Git backend bound to the repository root
            trunk: Name of the protected default branch
            worktree_base: Directory (relative to the root) holding branch worktrees
            db_filename: Name of the database file inside each worktree
        """
        self.backend = backend
        self.trunk = trunk
        self.worktree_base = worktree_base
        self.db_filename = db_filename

    @property
    def root(self) -> Path:
        return self.backend.repo_path

    def initialize(self) -> bool:
        """Open the repository, creating it when it does not exist.

        A new repository gets an empty initial commit on the trunk and a
        detached primary working copy, so that every branch (trunk included)
        can be checked out in a worktree of its own.

        Returns:
            True if a repository was created, False if one was opened

        Raises:
            RepositoryIOError: If the directory is not writable or git fails
        """
        if self.backend.is_repository():
            if self.backend.head_revision() is None:
                logger.debug(f"Repository at {self.root} has no commits, synthesizing one")
                self._seed()
            else:
                logger.debug(f"Opened existing repository at {self.root}")
            return False

        logger.debug(f"Creating repository at {self.root}")
        self.backend.init_repository(self.trunk)
        self._seed()
        return True

    def _seed(self) -> None:
        self.backend.check("init", "symbolic-ref", "HEAD", f"refs/heads/{self.trunk}")
        self.backend.exclude_paths(
            [f"/{self.worktree_base}/"]
            + [f"{self.db_filename}{suffix}" for suffix in SQLITE_SIDE_FILE_SUFFIXES]
        )
        self.backend.commit_empty(INITIAL_COMMIT_MESSAGE)
        self.backend.detach_head()

    # -- Branches --------------------------------------------------------------

    def branch_exists(self, name: str) -> bool:
        return self.backend.branch_revision(name) is not None

    def trunk_revision(self) -> Optional[str]:
        return self.backend.branch_revision(self.trunk)

    def _to_branch(self, name: str, revision: str) -> Branch:
        return Branch(
            name=name,
            revision=revision,
            created_at=self.backend.commit_authored_at(revision),
            is_main=name == self.trunk,
        )

    def create_branch(self, name: str) -> Branch:
        """Create a branch at the trunk's current revision.

        No files are copied; the worktree appears on first access.

        Raises:
            InvalidBranchNameError: If the name is malformed
            BranchExistsError: If the branch already exists
            NoCommitsError: If the trunk has no revision to branch from
        """
        validate_branch_name(name)
        if self.branch_exists(name):
            raise BranchExistsError(name)

        revision = self.trunk_revision()
        if revision is None:
            raise NoCommitsError()

        self.backend.create_branch_ref(name, revision)
        logger.debug(f"Created branch {name} at {revision[:8]}")
        return self._to_branch(name, revision)

    def get_branch(self, name: str) -> Branch:
        """Look up one branch.

        Raises:
            BranchNotFoundError: If no such branch exists
        """
        validate_branch_name(name)
        revision = self.backend.branch_revision(name)
        if revision is None:
            raise BranchNotFoundError(name)
        return self._to_branch(name, revision)

    def list_branches(self) -> List[Branch]:
        """All branches, trunk first, the rest in reference order."""
        branches = [
            Branch(
                name=ref.name,
                revision=ref.revision,
                created_at=ref.authored_at,
                is_main=ref.name == self.trunk,
            )
            for ref in self.backend.list_branch_refs()
        ]
        trunk = [b for b in branches if b.is_main]
        return trunk + [b for b in branches if not b.is_main]

    def delete_branch(self, name: str) -> None:
        """Delete a branch reference (its worktree must already be gone).

        Raises:
            BranchProtectedError: If ``name`` is the trunk
            BranchNotFoundError: If no such branch exists
        """
        if name == self.trunk:
            raise BranchProtectedError(name)
        validate_branch_name(name)
        if not self.branch_exists(name):
            raise BranchNotFoundError(name)
        self.backend.delete_branch_ref(name)
        logger.debug(f"Deleted branch {name}")

    # -- Revisions ---------------------------------------------------------------

    def current_revision(self) -> str:
        """Revision the repository HEAD points at.

        Raises:
            NoCommitsError: If there is no commit yet
        """
        revision = self.backend.head_revision()
        if revision is None:
            raise NoCommitsError()
        return revision

    def commit_branch(self, worktree: Union[str, Path], message: str) -> bool:
        """Commit the database file of the branch checked out in ``worktree``.

        Returns:
            True if a commit was made, False if there was nothing to commit
        """
        if not (Path(worktree) / self.db_filename).exists():
            logger.debug(f"No database in {worktree}, nothing to commit")
            return False
        committed = self.backend.commit_paths(worktree, [self.db_filename], message)
        logger.debug(f"Commit in {worktree}: {'made' if committed else 'nothing staged'}")
        return committed
