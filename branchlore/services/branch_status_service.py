"""Service for reporting branch and repository status"""

from typing import Any, Dict, List, TYPE_CHECKING

from branchlore.models.branch import BranchStatus
from branchlore.services.storage_service import FileSystem
from branchlore.utils.logging import get_logger

if TYPE_CHECKING:
    from branchlore.core.branch_repository import BranchRepositoryManager

logger = get_logger(__name__)


class BranchStatusService:
    """Service for describing branches and the databases behind them.

    Nothing here provisions a worktree; a branch that was never accessed
    reports ``db_exists=False``.
    """

    def __init__(self, manager: "BranchRepositoryManager", storage: FileSystem):
        """Initialize the service."""
        self.manager = manager
        self.storage = storage

    def get_branch_status(self, branch_name: str) -> BranchStatus:
        """Get the status of one branch.

        Raises:
            BranchNotFoundError: If the branch does not exist
        """
        branch = self.manager.get_branch(branch_name)
        db_path = self.storage.db_path(self.storage.worktree_path(branch_name))
        db_exists = self.storage.path_exists(db_path)
        size = self.storage.get_size(db_path) if db_exists else None

        logger.debug(f"Branch {branch_name}: db_exists={db_exists}, size={size}")
        return BranchStatus(branch=branch, db_path=str(db_path), db_exists=db_exists, size=size)

    def list_branch_statuses(self) -> List[BranchStatus]:
        return [self.get_branch_status(branch.name) for branch in self.manager.list_branches()]

    def repository_summary(self) -> Dict[str, Any]:
        """Branches, materialized databases and configuration in one mapping."""
        branches = self.manager.list_branches()
        databases = self.storage.branch_databases()
        return {
            "repo_path": str(self.manager.repo_root),
            "revision": self.manager.current_revision(),
            "branches": [branch.to_dict() for branch in branches],
            "branch_count": len(branches),
            "database_count": len(databases),
            "databases": databases,
            "worktree_count": len([w for w in self.manager.list_worktrees() if not w.is_primary]),
            "config": self.manager.config.to_dict(),
        }
