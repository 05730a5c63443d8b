"""Tests for configuration loading and validation"""
import json
from pathlib import Path

import pytest

from branchlore.config import Config, env_overrides


class TestConfigDefaults:
    """Test default values."""

    def test_defaults(self):
        config = Config()
        assert config.repo_path == "branchlore-repo"
        assert config.worktree_base == "worktrees"
        assert config.db_filename == "db.sqlite"
        assert config.trunk_branch == "main"
        assert config.server_host == "127.0.0.1"
        assert config.server_port == 8080
        assert config.log_level == "info"
        assert config.backend == "gitpython"
        assert config.git_timeout == 60.0
        assert config.auto_create_branches is False
        assert config.author_name == "branchlore"
        assert config.author_email == "branchlore@localhost"

    def test_resolved_repo_path_is_absolute(self):
        assert Config(repo_path="relative/repo").resolved_repo_path().is_absolute()

    def test_get_with_default(self):
        config = Config()
        assert config.get("trunk_branch") == "main"
        assert config.get("missing", "fallback") == "fallback"


class TestConfigValidation:
    """Test that invalid values are rejected."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"repo_path": "  "},
            {"worktree_base": ""},
            {"worktree_base": "/abs/path"},
            {"worktree_base": "../outside"},
            {"worktree_base": ".git"},
            {"db_filename": "nested/db.sqlite"},
            {"trunk_branch": ""},
            {"backend": "libgit2"},
            {"git_timeout": 0},
            {"server_port": 0},
            {"server_port": 70000},
            {"log_level": "verbose"},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            Config(**overrides)

    def test_log_level_is_normalized(self):
        assert Config(log_level="DEBUG").log_level == "debug"

    def test_numeric_strings_are_coerced(self):
        """Test that values read from the environment become numbers."""
        config = Config(server_port="9000", git_timeout="2.5")
        assert config.server_port == 9000
        assert config.git_timeout == 2.5


class TestConfigLoading:
    """Test file and environment loading."""

    def test_missing_file_gives_defaults(self, temp_dir):
        config = Config.load(temp_dir / "missing.json", use_env=False)
        assert config == Config()

    def test_load_file(self, temp_dir):
        path = temp_dir / "config.json"
        path.write_text(json.dumps({"trunk_branch": "trunk", "unknown_key": 1}))

        config = Config.load(path, use_env=False)

        assert config.trunk_branch == "trunk"

    def test_invalid_json(self, temp_dir):
        path = temp_dir / "config.json"
        path.write_text("{not json")
        with pytest.raises(ValueError, match="Invalid JSON"):
            Config.load(path, use_env=False)

    def test_non_object_json(self, temp_dir):
        path = temp_dir / "config.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValueError, match="JSON object"):
            Config.load(path, use_env=False)

    def test_save_and_load(self, temp_dir):
        """Test that a saved config loads back equal."""
        config = Config(repo_path=str(temp_dir / "repo"), server_port=9100, auto_create_branches=True)
        path = config.save(temp_dir / "sub" / "config.json")

        assert Config.load(path, use_env=False) == config

    def test_environment_overrides_file(self, temp_dir, monkeypatch):
        path = temp_dir / "config.json"
        path.write_text(json.dumps({"server_port": 9000}))
        monkeypatch.setenv("BRANCHLORE_SERVER_PORT", "9500")
        monkeypatch.setenv("BRANCHLORE_AUTO_CREATE_BRANCHES", "yes")

        config = Config.load(path)

        assert config.server_port == 9500
        assert config.auto_create_branches is True


class TestEnvOverrides:
    """Test environment variable collection."""

    def test_only_set_variables_are_returned(self):
        overrides = env_overrides({"BRANCHLORE_REPO_PATH": "/data", "BRANCHLORE_BACKEND": "", "OTHER": "x"})
        assert overrides == {"repo_path": "/data"}

    @pytest.mark.parametrize("value,expected", [("1", True), ("true", True), ("0", False), ("no", False)])
    def test_boolean_parsing(self, value, expected):
        overrides = env_overrides({"BRANCHLORE_AUTO_CREATE_BRANCHES": value})
        assert overrides["auto_create_branches"] is expected


class TestWithOverrides:
    """Test copying a config with overrides."""

    def test_none_values_are_ignored(self):
        config = Config(trunk_branch="trunk")
        updated = config.with_overrides(trunk_branch=None, backend="subprocess")

        assert updated.trunk_branch == "trunk"
        assert updated.backend == "subprocess"
        assert config.backend == "gitpython"

    def test_overrides_are_validated(self):
        with pytest.raises(ValueError):
            Config().with_overrides(server_port=-1)

    def test_path_values(self, temp_dir):
        config = Config().with_overrides(repo_path=Path(temp_dir))
        assert config.resolved_repo_path() == Path(temp_dir)
