"""Shared constants for branchlore."""

# Configuration defaults
DEFAULT_REPO_PATH = "branchlore-repo"
DEFAULT_WORKTREE_BASE = "worktrees"
DEFAULT_DB_FILENAME = "db.sqlite"
DEFAULT_TRUNK_BRANCH = "main"
DEFAULT_SERVER_HOST = "127.0.0.1"
DEFAULT_SERVER_PORT = 8080
DEFAULT_LOG_LEVEL = "info"
DEFAULT_BACKEND = "gitpython"
DEFAULT_GIT_TIMEOUT = 60.0

# Identity used for every commit branchlore makes
DEFAULT_AUTHOR_NAME = "branchlore"
DEFAULT_AUTHOR_EMAIL = "branchlore@localhost"

INITIAL_COMMIT_MESSAGE = "Initial commit"

BACKENDS = ["gitpython", "subprocess"]
LOG_LEVELS = ["debug", "info", "warning", "error", "critical"]

# Marker git prints for every conflicting path during a merge
CONFLICT_MARKER = "CONFLICT"

# Bookkeeping table created in every new branch database
METADATA_TABLE = "_branchlore_metadata"
SCHEMA_VERSION = "1.0"

# Suffixes SQLite uses for its side files
SQLITE_SIDE_FILE_SUFFIXES = ["-journal", "-wal", "-shm"]

DEFAULT_COMMIT_MESSAGE = "Update database"
