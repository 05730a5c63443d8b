"""SQLite access to branch databases.

The manager only resolves paths; this module opens the files. Connections are
kept in a :class:`ConnectionCache` that the manager is given too, so it can
drop a connection whose file is deleted or rewritten by a merge.
"""

import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Optional

from branchlore.constants import METADATA_TABLE, SCHEMA_VERSION
from branchlore.exceptions import QueryError
from branchlore.models.query import QueryResult
from branchlore.utils.logging import get_logger

if TYPE_CHECKING:
    from branchlore.core.branch_repository import BranchRepositoryManager
    from branchlore.services.storage_service import FileSystem

logger = get_logger(__name__)


@dataclass
class _CacheEntry:
    path: str
    connection: sqlite3.Connection
    lock: threading.Lock = field(default_factory=threading.Lock)


class ConnectionCache:
    """Open SQLite connections, one per branch.

    A connection is used by one thread at a time: :meth:`connection` holds the
    entry's lock for the duration of the block.
    """

    def __init__(self):
        self._entries: Dict[str, _CacheEntry] = {}
        self._guard = threading.Lock()

    def _entry_for(
        self, branch: str, path: str, on_open: Optional[Callable[[sqlite3.Connection], None]]
    ) -> _CacheEntry:
        with self._guard:
            stale = self._entries.get(branch)
            if stale is not None and stale.path == path:
                return stale

            connection = sqlite3.connect(path, check_same_thread=False)
            entry = _CacheEntry(path=path, connection=connection)
            if on_open is not None:
                try:
                    on_open(connection)
                except sqlite3.Error:
                    connection.close()
                    raise
            self._entries[branch] = entry
            logger.debug(f"Opened database for {branch} at {path}")

        if stale is not None:
            logger.debug(f"Database path of {branch} changed, closing the old connection")
            with stale.lock:
                self._close(stale)
        return entry

    @contextmanager
    def connection(
        self,
        branch: str,
        path: Path,
        on_open: Optional[Callable[[sqlite3.Connection], None]] = None,
    ) -> Iterator[sqlite3.Connection]:
        """Use the cached connection for ``branch``, opening it on demand.

        Args:
            branch: Branch the database belongs to
            path: Database file; a different path than last time reopens
            on_open: Called once with every newly opened connection
        """
        while True:
            entry = self._entry_for(branch, str(path), on_open)
            with entry.lock:
                # Evicted or replaced between lookup and lock: start over
                if self._is_current(branch, entry):
                    yield entry.connection
                    return

    def _is_current(self, branch: str, entry: _CacheEntry) -> bool:
        with self._guard:
            return self._entries.get(branch) is entry

    def evict(self, branch: str) -> None:
        """Close and forget the connection for ``branch``, if any."""
        with self._guard:
            entry = self._entries.pop(branch, None)
        if entry is not None:
            # Wait for the current user to finish
            with entry.lock:
                self._close(entry)
            logger.debug(f"Evicted database connection for {branch}")

    def close_all(self) -> None:
        with self._guard:
            entries = list(self._entries.values())
            self._entries.clear()
        for entry in entries:
            with entry.lock:
                self._close(entry)

    @staticmethod
    def _close(entry: _CacheEntry) -> None:
        try:
            entry.connection.close()
        except sqlite3.Error as e:
            logger.debug(f"Error closing {entry.path}: {e}")

    def __contains__(self, branch: str) -> bool:
        with self._guard:
            return branch in self._entries

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


class BranchDatabase:
    """Statement execution and introspection over one open connection."""

    def __init__(self, connection: sqlite3.Connection):
        self.connection = connection

    def execute(self, sql: str) -> QueryResult:
        """Run one statement and commit.

        Raises:
            sqlite3.Error: If SQLite rejects the statement
        """
        try:
            cursor = self.connection.execute(sql)
            if cursor.description is not None:
                columns = [column[0] for column in cursor.description]
                rows = [list(row) for row in cursor.fetchall()]
                self.connection.commit()
                return QueryResult(columns=columns, rows=rows)

            self.connection.commit()
            return QueryResult(rows_affected=cursor.rowcount, last_insert_id=cursor.lastrowid)
        except sqlite3.Error:
            if self.connection.in_transaction:
                self.connection.rollback()
            raise

    def init_schema(self) -> None:
        """Create the bookkeeping table every branch database carries."""
        self.connection.executescript(
            f"""
            CREATE TABLE IF NOT EXISTS {METADATA_TABLE} (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );
            INSERT OR IGNORE INTO {METADATA_TABLE} (key, value)
            VALUES ('schema_version', '{SCHEMA_VERSION}');
            """
        )
        self.connection.commit()

    def tables(self) -> List[str]:
        cursor = self.connection.execute(
            "SELECT name FROM sqlite_master "
            "WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [row[0] for row in cursor.fetchall()]

    def schema(self, table: str) -> Optional[str]:
        """CREATE statement of ``table``, or None if there is no such table."""
        row = self.connection.execute(
            "SELECT sql FROM sqlite_master WHERE type='table' AND name=?", (table,)
        ).fetchone()
        return row[0] if row else None

    def stats(self) -> Dict[str, Any]:
        page_count = self.connection.execute("PRAGMA page_count").fetchone()[0]
        page_size = self.connection.execute("PRAGMA page_size").fetchone()[0]
        tables = self.tables()
        return {
            "page_count": page_count,
            "page_size": page_size,
            "file_size": page_count * page_size,
            "table_count": len(tables),
            "tables": tables,
        }


class DatabaseService:
    """Runs SQL against the database of a named branch."""

    def __init__(
        self,
        manager: "BranchRepositoryManager",
        cache: Optional[ConnectionCache] = None,
        storage: Optional["FileSystem"] = None,
    ):
        """Initialize the service.

        Args:
            manager: Resolves branch names to database paths
            cache: Connection cache; should be the one given to the manager
            storage: Filesystem helper used for size reporting
        """
        self.manager = manager
        self.cache = cache or manager.cache or ConnectionCache()
        self.storage = storage

    @contextmanager
    def _database(self, branch: str) -> Iterator[BranchDatabase]:
        path = self.manager.resolve_database_path(branch)
        try:
            with self.cache.connection(branch, path, on_open=self._prepare) as connection:
                yield BranchDatabase(connection)
        except sqlite3.Error as e:
            raise QueryError(branch, str(e)) from e

    @staticmethod
    def _prepare(connection: sqlite3.Connection) -> None:
        BranchDatabase(connection).init_schema()

    def query(self, branch: str, sql: str) -> QueryResult:
        """Execute ``sql`` on the branch's database.

        Raises:
            QueryError: If the statement is empty or SQLite rejects it
        """
        if not sql or not sql.strip():
            raise QueryError(branch, "empty statement")
        with self._database(branch) as db:
            result = db.execute(sql)
        logger.debug(f"Query on {branch}: {result.count} rows, {result.rows_affected} affected")
        return result

    def tables(self, branch: str) -> List[str]:
        with self._database(branch) as db:
            return db.tables()

    def schema(self, branch: str) -> Dict[str, str]:
        """Map table name -> CREATE statement for every table on the branch."""
        with self._database(branch) as db:
            return {table: db.schema(table) or "" for table in db.tables()}

    def stats(self, branch: str) -> Dict[str, Any]:
        with self._database(branch) as db:
            stats = db.stats()
        stats["branch"] = branch
        if self.storage is not None:
            path = self.manager.resolve_database_path(branch)
            stats["path"] = str(path)
            stats["disk_size"] = self.storage.get_size(path)
        return stats

    def close(self) -> None:
        self.cache.close_all()
