"""Merge outcome model."""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class MergeResult:
    """Result of merging one branch into another.

    ``conflicts`` is only populated when the merge stopped on content
    conflicts; ``message`` is the raw output of the merge command.
    """

    success: bool
    conflicts: List[str] = field(default_factory=list)
    message: str = ""

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "conflicts": list(self.conflicts),
            "message": self.message,
        }
