"""Query result model."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class QueryResult:
    """Rows returned by a statement, or the effect of a modifying statement."""

    columns: List[str] = field(default_factory=list)
    rows: List[List[Any]] = field(default_factory=list)
    rows_affected: Optional[int] = None  # Only set for statements without a result set
    last_insert_id: Optional[int] = None

    @property
    def count(self) -> int:
        return len(self.rows)

    @property
    def is_result_set(self) -> bool:
        return self.rows_affected is None

    def to_dict(self) -> Dict[str, Any]:
        if self.is_result_set:
            return {"columns": self.columns, "rows": self.rows, "count": self.count}
        return {"rows_affected": self.rows_affected, "last_insert_id": self.last_insert_id}
