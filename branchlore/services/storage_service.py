"""Filesystem access for repository and branch database files."""

import os
import shutil
from pathlib import Path
from typing import Dict, Union

from branchlore.config import Config
from branchlore.exceptions import RepositoryIOError
from branchlore.paths import database_path, worktree_path
from branchlore.utils.logging import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]


class FileSystem:
    """Path helpers and size/cleanup operations rooted at the configured repository."""

    def __init__(self, config: Config):
        self.config = config

    def repo_path(self) -> Path:
        """Absolute repository root."""
        return self.config.resolved_repo_path()

    def worktree_path(self, branch: str) -> Path:
        return worktree_path(self.repo_path(), self.config.worktree_base, branch)

    def db_path(self, worktree: PathLike) -> Path:
        return database_path(worktree, self.config.db_filename)

    def ensure_dir(self, path: PathLike) -> Path:
        path = Path(path)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RepositoryIOError("ensure_dir", f"{path}: {e}") from e
        return path

    def path_exists(self, path: PathLike) -> bool:
        return Path(path).exists()

    def get_size(self, path: PathLike) -> int:
        """Size in bytes of a file, or of every file below a directory.

        Raises:
            RepositoryIOError: If the path does not exist
        """
        path = Path(path)
        try:
            if path.is_dir():
                return self._dir_size(path)
            return path.stat().st_size
        except OSError as e:
            raise RepositoryIOError("get_size", f"{path}: {e}") from e

    def _dir_size(self, path: Path) -> int:
        total = 0
        for dirpath, _dirnames, filenames in os.walk(path):
            for filename in filenames:
                file_path = os.path.join(dirpath, filename)
                if not os.path.islink(file_path):
                    total += os.path.getsize(file_path)
        return total

    def cleanup(self, path: PathLike) -> None:
        """Remove a file or directory tree; a missing path is ignored."""
        path = Path(path)
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            elif path.exists() or path.is_symlink():
                path.unlink()
        except OSError as e:
            raise RepositoryIOError("cleanup", f"{path}: {e}") from e
        logger.debug(f"Cleaned up {path}")

    def branch_databases(self) -> Dict[str, str]:
        """Map branch name -> database path for every worktree holding a database.

        Nested branch names (``team/feature``) are found by walking the
        worktree base; a directory counts as a worktree when it has a .git
        entry.
        """
        base = self.repo_path() / self.config.worktree_base
        databases: Dict[str, str] = {}
        if not base.is_dir():
            return databases

        for dirpath, dirnames, _filenames in os.walk(base):
            current = Path(dirpath)
            if (current / ".git").exists():
                db_file = self.db_path(current)
                if db_file.exists():
                    databases[current.relative_to(base).as_posix()] = str(db_file)
                # Branch names cannot nest inside another branch's worktree
                dirnames[:] = []
            else:
                dirnames.sort()
        return databases
