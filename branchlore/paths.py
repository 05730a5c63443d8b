"""Branch name to on-disk location mapping.

Everything here is pure: no filesystem access, no git.
"""

import re
from pathlib import Path
from typing import Union

from branchlore.exceptions import InvalidBranchNameError

# Characters git refuses in reference names
_FORBIDDEN_CHARS = re.compile(r"[\x00-\x20\x7f~^:?*\[\\]")


def validate_branch_name(name: str) -> str:
    """Check that ``name`` is a usable branch name and return it.

    The rules are git's reference-name rules plus the constraints of using
    the name as a relative directory under the worktree base.

    Raises:
        InvalidBranchNameError: If the name cannot be used
    """
    if not name:
        raise InvalidBranchNameError(name, "name is empty")
    if _FORBIDDEN_CHARS.search(name):
        raise InvalidBranchNameError(name, "contains whitespace, control or special characters")
    if name.startswith("-"):
        raise InvalidBranchNameError(name, "cannot start with '-'")
    if name.startswith("/") or name.endswith("/") or "//" in name:
        raise InvalidBranchNameError(name, "empty path component")
    if ".." in name or "@{" in name or name == "@":
        raise InvalidBranchNameError(name, "contains a reserved sequence")
    if name.endswith("."):
        raise InvalidBranchNameError(name, "cannot end with '.'")
    for component in name.split("/"):
        if component.startswith("."):
            raise InvalidBranchNameError(name, "path components cannot start with '.'")
        if component.endswith(".lock"):
            raise InvalidBranchNameError(name, "path components cannot end with '.lock'")
    return name


def worktree_path(repo_root: Union[str, Path], worktree_base: str, branch: str) -> Path:
    """Directory holding the checked-out files of ``branch``."""
    return Path(repo_root) / worktree_base / branch


def database_path(worktree: Union[str, Path], db_filename: str) -> Path:
    """Database file inside a branch worktree."""
    return Path(worktree) / db_filename
