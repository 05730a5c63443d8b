"""Branch model and related enums"""
from enum import Enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


class RepositoryState(Enum):
    """Lifecycle of a branch repository."""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


@dataclass(frozen=True)
class Branch:
    """One line of database history."""
    name: str
    revision: str
    created_at: datetime  # author time of the commit the branch points at
    is_main: bool = False

    @property
    def short_revision(self) -> str:
        return self.revision[:8]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "revision": self.revision,
            "created_at": self.created_at.isoformat(),
            "is_main": self.is_main,
        }


@dataclass
class BranchStatus:
    """A branch together with the state of its database file."""
    branch: Branch
    db_path: str
    db_exists: bool
    size: Optional[int] = None  # None = no database yet

    def to_dict(self) -> Dict[str, Any]:
        return {
            "branch": self.branch.to_dict(),
            "db_path": self.db_path,
            "db_exists": self.db_exists,
            "size": self.size,
        }
