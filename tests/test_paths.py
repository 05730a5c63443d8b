"""Tests for branch name validation and path mapping"""
from pathlib import Path

import pytest

from branchlore.exceptions import InvalidBranchNameError
from branchlore.paths import database_path, validate_branch_name, worktree_path


class TestValidateBranchName:
    """Test branch name validation."""

    @pytest.mark.parametrize("name", ["main", "feature", "team/feature-1", "fix_2024.01", "a/b/c"])
    def test_valid_names(self, name):
        """Test that ordinary names pass unchanged."""
        assert validate_branch_name(name) == name

    @pytest.mark.parametrize(
        "name",
        [
            "",
            "has space",
            "tab\tname",
            "-leading-dash",
            "/leading",
            "trailing/",
            "double//slash",
            "up/../escape",
            "..",
            "name@{1}",
            "@",
            "ends.",
            ".hidden",
            "team/.hidden",
            "locked.lock",
            "what?",
            "star*",
            "tilde~1",
            "caret^",
            "colon:x",
            "back\\slash",
        ],
    )
    def test_invalid_names(self, name):
        """Test that names git or the worktree layout cannot hold are rejected."""
        with pytest.raises(InvalidBranchNameError):
            validate_branch_name(name)

    def test_invalid_name_is_value_error(self):
        """Test that callers can catch invalid names as ValueError."""
        with pytest.raises(ValueError, match="Invalid branch name"):
            validate_branch_name("bad name")


class TestPathMapping:
    """Test the branch -> worktree -> database mapping."""

    def test_worktree_path(self):
        assert worktree_path("/data/repo", "worktrees", "feature") == Path("/data/repo/worktrees/feature")

    def test_nested_branch_maps_to_nested_directory(self):
        """Test that slashes in branch names become directories."""
        assert worktree_path("/data/repo", "worktrees", "team/feature") == Path(
            "/data/repo/worktrees/team/feature"
        )

    def test_database_path(self):
        assert database_path("/data/repo/worktrees/main", "db.sqlite") == Path(
            "/data/repo/worktrees/main/db.sqlite"
        )
