"""Tests for the repository store, run against every git backend"""
import time
from unittest.mock import patch

import pytest

from branchlore.exceptions import (
    BranchExistsError,
    BranchNotFoundError,
    BranchProtectedError,
    InvalidBranchNameError,
    NoCommitsError,
    RepositoryIOError,
)
from branchlore.services.git.repository import RepositoryStore


class TestInitialize:
    """Test repository creation and re-opening."""

    def test_creates_repository(self, backend, repo_path):
        store = RepositoryStore(backend, "main", "worktrees", "db.sqlite")

        assert store.initialize() is True
        assert (repo_path / ".git").is_dir()
        assert backend.is_repository()

    def test_initial_commit_is_empty(self, store, backend):
        """Test that the synthesized commit contains no files."""
        files = backend.check("ls_tree", "ls-tree", "-r", "--name-only", "HEAD").stdout
        assert files == ""
        assert not (store.root / "db.sqlite").exists()

    def test_trunk_points_at_initial_commit(self, store, backend):
        assert store.trunk_revision() == backend.head_revision()
        assert store.current_revision() == store.trunk_revision()

    def test_primary_working_copy_is_detached(self, store, backend):
        """Test that no branch is checked out in the primary working copy."""
        result = backend.run("symbolic-ref", "-q", "HEAD")
        assert result.status == 1

    def test_worktree_base_is_excluded(self, store):
        exclude = (store.root / ".git" / "info" / "exclude").read_text().splitlines()
        assert "/worktrees/" in exclude
        assert "db.sqlite-journal" in exclude

    def test_initialize_is_idempotent(self, store, backend):
        """Test that re-opening changes nothing."""
        revision = store.current_revision()

        assert store.initialize() is False
        assert store.current_revision() == revision
        assert [b.name for b in store.list_branches()] == ["main"]

    def test_parent_repository_is_ignored(self, backend_name, temp_dir):
        """Test that a directory inside another repository gets its own repository."""
        from branchlore.config import Config
        from branchlore.services.git.backend import create_backend

        outer = create_backend(Config(repo_path=str(temp_dir / "outer"), backend=backend_name))
        RepositoryStore(outer, "main", "worktrees", "db.sqlite").initialize()

        inner_path = temp_dir / "outer" / "nested"
        inner_path.mkdir()
        inner = create_backend(Config(repo_path=str(inner_path), backend=backend_name))

        assert inner.is_repository() is False
        assert RepositoryStore(inner, "main", "worktrees", "db.sqlite").initialize() is True
        assert (inner_path / ".git").is_dir()

    def test_unwritable_location(self, backend_name, temp_dir):
        """Test that a path blocked by a file raises RepositoryIOError."""
        from branchlore.config import Config
        from branchlore.services.git.backend import create_backend

        blocker = temp_dir / "blocker"
        blocker.write_text("not a directory")
        backend = create_backend(Config(repo_path=str(blocker / "repo"), backend=backend_name))

        with pytest.raises(RepositoryIOError):
            RepositoryStore(backend, "main", "worktrees", "db.sqlite").initialize()


class TestBranches:
    """Test branch creation, lookup, listing and deletion."""

    def test_create_branch_at_trunk_revision(self, store):
        branch = store.create_branch("feature")

        assert branch.name == "feature"
        assert branch.revision == store.trunk_revision()
        assert branch.is_main is False
        assert branch.created_at.tzinfo is not None

    def test_create_branch_copies_no_files(self, store):
        store.create_branch("feature")
        assert not (store.root / "worktrees").exists()

    def test_create_existing_branch(self, store):
        store.create_branch("feature")
        with pytest.raises(BranchExistsError):
            store.create_branch("feature")

    def test_create_trunk_again(self, store):
        with pytest.raises(BranchExistsError):
            store.create_branch("main")

    def test_create_invalid_name(self, store):
        with pytest.raises(InvalidBranchNameError):
            store.create_branch("bad name")

    def test_create_without_commits(self, store):
        with patch.object(store, "trunk_revision", return_value=None):
            with pytest.raises(NoCommitsError):
                store.create_branch("feature")

    def test_get_branch(self, store):
        store.create_branch("team/feature")

        branch = store.get_branch("team/feature")

        assert branch.name == "team/feature"
        assert store.get_branch("main").is_main is True

    def test_get_missing_branch(self, store):
        with pytest.raises(BranchNotFoundError):
            store.get_branch("nope")

    def test_list_branches_trunk_first(self, store):
        """Test that the trunk leads even when it sorts after other names."""
        store.create_branch("alpha")
        store.create_branch("zeta")

        names = [b.name for b in store.list_branches()]

        assert names[0] == "main"
        assert sorted(names) == ["alpha", "main", "zeta"]
        assert names == [b.name for b in store.list_branches()]

    def test_branch_exists(self, store):
        store.create_branch("feature")
        assert store.branch_exists("feature")
        assert not store.branch_exists("other")

    def test_delete_branch(self, store):
        store.create_branch("feature")

        store.delete_branch("feature")

        assert not store.branch_exists("feature")

    def test_delete_trunk_is_refused(self, store):
        with pytest.raises(BranchProtectedError):
            store.delete_branch("main")
        assert store.branch_exists("main")

    def test_delete_missing_branch(self, store):
        with pytest.raises(BranchNotFoundError):
            store.delete_branch("nope")


class TestCommitBranch:
    """Test committing a branch's database file."""

    def test_nothing_to_commit_without_database(self, store, temp_dir):
        assert store.commit_branch(temp_dir, "message") is False

    def test_commit_advances_branch(self, store, backend):
        store.create_branch("feature")
        worktree = store.root / "worktrees" / "feature"
        worktree.parent.mkdir(parents=True)
        backend.add_worktree(worktree, "feature")
        (worktree / "db.sqlite").write_bytes(b"data")
        before = store.get_branch("feature").revision

        assert store.commit_branch(worktree, "Add data") is True
        after = store.get_branch("feature").revision

        assert after != before
        assert store.trunk_revision() == before

    def test_unchanged_database_is_not_committed(self, store, backend):
        store.create_branch("feature")
        worktree = store.root / "worktrees" / "feature"
        worktree.parent.mkdir(parents=True)
        backend.add_worktree(worktree, "feature")
        (worktree / "db.sqlite").write_bytes(b"data")
        store.commit_branch(worktree, "Add data")

        assert store.commit_branch(worktree, "Again") is False


class TestTimeouts:
    """Test the git_timeout budget."""

    def test_slow_command_is_killed(self, store, backend_name):
        from branchlore.config import Config
        from branchlore.services.git.backend import create_backend

        slow = create_backend(Config(repo_path=str(store.root), backend=backend_name, git_timeout=0.5))
        started = time.monotonic()

        with pytest.raises(RepositoryIOError):
            slow.run("-c", "alias.slow=!sleep 5", "slow")

        assert time.monotonic() - started < 4
