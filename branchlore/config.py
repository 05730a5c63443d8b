"""Configuration handling for branchlore"""

import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Union

from branchlore.constants import (
    BACKENDS,
    DEFAULT_AUTHOR_EMAIL,
    DEFAULT_AUTHOR_NAME,
    DEFAULT_BACKEND,
    DEFAULT_DB_FILENAME,
    DEFAULT_GIT_TIMEOUT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_REPO_PATH,
    DEFAULT_SERVER_HOST,
    DEFAULT_SERVER_PORT,
    DEFAULT_TRUNK_BRANCH,
    DEFAULT_WORKTREE_BASE,
    LOG_LEVELS,
)

ENV_PREFIX = "BRANCHLORE_"

# Environment variable suffix -> config field
ENV_FIELDS = {
    "REPO_PATH": "repo_path",
    "WORKTREE_BASE": "worktree_base",
    "DB_FILENAME": "db_filename",
    "TRUNK_BRANCH": "trunk_branch",
    "SERVER_HOST": "server_host",
    "SERVER_PORT": "server_port",
    "LOG_LEVEL": "log_level",
    "BACKEND": "backend",
    "GIT_TIMEOUT": "git_timeout",
    "AUTO_CREATE_BRANCHES": "auto_create_branches",
}


def default_config_path() -> Path:
    """Location of the user's config file."""
    return Path.home() / ".branchlore" / "config.json"


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Configuration for branchlore with validation."""

    # Repository layout
    repo_path: str = DEFAULT_REPO_PATH
    worktree_base: str = DEFAULT_WORKTREE_BASE
    db_filename: str = DEFAULT_DB_FILENAME
    trunk_branch: str = DEFAULT_TRUNK_BRANCH

    # Git access
    backend: str = DEFAULT_BACKEND  # gitpython, subprocess
    git_timeout: float = DEFAULT_GIT_TIMEOUT  # seconds before a git command is killed
    auto_create_branches: bool = False  # create missing branches on first database access
    author_name: str = DEFAULT_AUTHOR_NAME
    author_email: str = DEFAULT_AUTHOR_EMAIL

    # HTTP server
    server_host: str = DEFAULT_SERVER_HOST
    server_port: int = DEFAULT_SERVER_PORT

    log_level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_repo_path()
        self._validate_worktree_base()
        self._validate_db_filename()
        self._validate_trunk_branch()
        self._validate_backend()
        self._validate_git_timeout()
        self._validate_server_port()
        self._validate_log_level()

    def _validate_repo_path(self):
        """Validate repo_path is not empty."""
        if not self.repo_path or not str(self.repo_path).strip():
            raise ValueError("repo_path cannot be empty")
        self.repo_path = str(self.repo_path).strip()

    def _validate_worktree_base(self):
        """Validate worktree_base is a single relative directory name."""
        base = (self.worktree_base or "").strip()
        if not base:
            raise ValueError("worktree_base cannot be empty")
        if os.path.isabs(base) or ".." in Path(base).parts or base == ".":
            raise ValueError(f"worktree_base must be a relative directory name, got '{base}'")
        if base == ".git" or base.startswith(".git/"):
            raise ValueError("worktree_base cannot live inside .git")
        self.worktree_base = base

    def _validate_db_filename(self):
        """Validate db_filename is a bare file name."""
        name = (self.db_filename or "").strip()
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise ValueError(f"db_filename must be a plain file name, got '{self.db_filename}'")
        self.db_filename = name

    def _validate_trunk_branch(self):
        """Validate trunk_branch is not empty."""
        if not self.trunk_branch or not self.trunk_branch.strip():
            raise ValueError("trunk_branch cannot be empty")
        self.trunk_branch = self.trunk_branch.strip()

    def _validate_backend(self):
        """Validate backend is one of allowed values."""
        if self.backend not in BACKENDS:
            raise ValueError(f"backend must be one of {BACKENDS}, got '{self.backend}'")

    def _validate_git_timeout(self):
        """Validate git_timeout is positive."""
        self.git_timeout = float(self.git_timeout)
        if self.git_timeout <= 0:
            raise ValueError(f"git_timeout must be positive, got {self.git_timeout}")

    def _validate_server_port(self):
        """Validate server_port is a usable TCP port."""
        self.server_port = int(self.server_port)
        if not 0 < self.server_port < 65536:
            raise ValueError(f"server_port must be between 1 and 65535, got {self.server_port}")

    def _validate_log_level(self):
        """Validate log_level is one of allowed values."""
        self.log_level = self.log_level.lower()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}, got '{self.log_level}'")

    def resolved_repo_path(self) -> Path:
        """Absolute repository root; relative paths are taken from the working directory."""
        return Path(self.repo_path).expanduser().absolute()

    def to_dict(self) -> dict:
        """Convert config to a JSON-compatible dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def get(self, key: str, default=None):
        """Get config value by key."""
        return getattr(self, key, default)

    def with_overrides(self, **overrides) -> "Config":
        """Copy of this config with the non-None overrides applied."""
        values = self.to_dict()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return Config.from_dict(values)

    @classmethod
    def from_dict(cls, config_dict: dict) -> "Config":
        """Create Config from dictionary."""
        # Extract only known fields
        known_fields = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in config_dict.items() if k in known_fields}
        return cls(**filtered)

    @classmethod
    def load(cls, config_path: Optional[Union[str, Path]] = None, use_env: bool = True) -> "Config":
        """Load configuration from a JSON file, then apply environment overrides.

        A missing file yields the defaults.

        Args:
            config_path: File to read (defaults to ~/.branchlore/config.json)
            use_env: Apply BRANCHLORE_* environment variables on top

        Returns:
            Validated Config

        Raises:
            ValueError: If the file is not valid JSON or holds invalid values
        """
        path = Path(config_path) if config_path else default_config_path()
        values: dict = {}
        if path.exists():
            try:
                values = json.loads(path.read_text())
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in config file {path}: {e}") from e
            if not isinstance(values, dict):
                raise ValueError(f"Config file {path} must contain a JSON object")

        if use_env:
            values.update(env_overrides())

        return cls.from_dict(values)

    def save(self, config_path: Optional[Union[str, Path]] = None) -> Path:
        """Write this configuration as JSON and return the path written."""
        path = Path(config_path) if config_path else default_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2) + "\n")
        return path


def env_overrides(environ: Optional[dict] = None) -> dict:
    """Collect BRANCHLORE_* settings from the environment."""
    environ = os.environ if environ is None else environ
    overrides = {}
    for suffix, field_name in ENV_FIELDS.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value is None or value == "":
            continue
        if field_name == "auto_create_branches":
            overrides[field_name] = _parse_bool(value)
        else:
            overrides[field_name] = value
    return overrides
