"""Pytest fixtures for branchlore tests"""
import tempfile
from pathlib import Path

import pytest

from branchlore.config import Config
from branchlore.constants import BACKENDS
from branchlore.core.branch_repository import BranchRepositoryManager
from branchlore.services.database_service import ConnectionCache, DatabaseService
from branchlore.services.git.backend import create_backend
from branchlore.services.git.repository import RepositoryStore
from branchlore.services.storage_service import FileSystem


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        # Resolve symlinked temp roots so git's paths compare equal to ours
        yield Path(tmpdir).resolve()


@pytest.fixture
def repo_path(temp_dir):
    return temp_dir / "repo"


@pytest.fixture(params=BACKENDS)
def backend_name(request):
    """Run the test once per git backend."""
    return request.param


@pytest.fixture
def config(repo_path, backend_name):
    """Configuration rooted in the temporary directory."""
    return Config(repo_path=str(repo_path), backend=backend_name)


@pytest.fixture
def backend(config):
    return create_backend(config)


@pytest.fixture
def store(backend, config):
    """An initialized repository store."""
    store = RepositoryStore(
        backend,
        trunk=config.trunk_branch,
        worktree_base=config.worktree_base,
        db_filename=config.db_filename,
    )
    store.initialize()
    return store


@pytest.fixture
def cache():
    cache = ConnectionCache()
    yield cache
    cache.close_all()


@pytest.fixture
def manager(config, cache):
    """An initialized manager sharing the connection cache."""
    manager = BranchRepositoryManager(config, cache=cache)
    manager.init()
    return manager


@pytest.fixture
def storage(config):
    return FileSystem(config)


@pytest.fixture
def database_service(manager, cache, storage):
    return DatabaseService(manager, cache, storage)


def _commit_file(backend, workdir, name, content, message="Update file"):
    """Write a file inside a working copy and commit it there."""
    path = Path(workdir) / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    backend.check("add", "add", "--", name, cwd=workdir)
    backend.check("commit", "commit", "-m", message, cwd=workdir)


@pytest.fixture
def commit_file():
    """Helper that writes and commits a file in a working copy."""
    return _commit_file
