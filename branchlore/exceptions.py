"""Custom exceptions for branchlore"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from branchlore.models.merge import MergeResult


class BranchloreError(Exception):
    """Base exception for all branchlore errors."""
    pass


class NotInitializedError(BranchloreError):
    """Exception raised when an operation runs before the repository is initialized."""

    def __init__(self, operation: Optional[str] = None):
        self.operation = operation
        error_msg = "Repository is not initialized"
        if operation:
            error_msg += f" (attempted '{operation}')"
        super().__init__(error_msg)


class RepositoryIOError(BranchloreError):
    """Exception raised for filesystem or git failures."""

    def __init__(self, operation: str, message: Optional[str] = None, output: Optional[str] = None):
        self.operation = operation
        self.message = message
        self.output = output

        error_msg = f"Repository operation '{operation}' failed"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class MergeCheckoutError(RepositoryIOError):
    """Exception raised when the merge target cannot be checked out.

    The failed merge outcome is attached as ``result``.
    """

    def __init__(self, target: str, result: "MergeResult"):
        self.target = target
        self.result = result
        super().__init__("checkout", f"could not check out '{target}'", result.message)


class BranchNotFoundError(BranchloreError):
    """Exception raised when a branch is not found."""

    def __init__(self, branch: str):
        self.branch = branch
        super().__init__(f"Branch '{branch}' not found")


class BranchExistsError(BranchloreError):
    """Exception raised when creating a branch that already exists."""

    def __init__(self, branch: str):
        self.branch = branch
        super().__init__(f"Branch '{branch}' already exists")


class BranchProtectedError(BranchloreError):
    """Exception raised when attempting to delete the trunk branch."""

    def __init__(self, branch: str):
        self.branch = branch
        super().__init__(f"Branch '{branch}' is protected")


class InvalidBranchNameError(BranchloreError, ValueError):
    """Exception raised for branch names git or the worktree layout cannot hold."""

    def __init__(self, branch: str, reason: str):
        self.branch = branch
        self.reason = reason
        super().__init__(f"Invalid branch name '{branch}': {reason}")


class NoCommitsError(BranchloreError):
    """Exception raised when the repository has no revision to branch from."""

    def __init__(self):
        super().__init__("Repository has no commits; initialization did not complete")


class WorktreeCreationError(BranchloreError):
    """Exception raised when git fails to materialize a branch worktree."""

    def __init__(self, branch: str, output: Optional[str] = None):
        self.branch = branch
        self.output = output

        error_msg = f"Could not create worktree for branch '{branch}'"
        if output:
            error_msg += f": {output.strip()}"

        super().__init__(error_msg)


class QueryError(BranchloreError):
    """Exception raised when SQLite rejects a statement."""

    def __init__(self, branch: str, message: str):
        self.branch = branch
        self.message = message
        super().__init__(f"Query on branch '{branch}' failed: {message}")
