"""Branch repository manager: the facade over store, provisioner and merge engine."""

import threading
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Union

from branchlore.config import Config
from branchlore.constants import DEFAULT_COMMIT_MESSAGE
from branchlore.exceptions import NotInitializedError
from branchlore.models.branch import Branch, RepositoryState
from branchlore.models.merge import MergeResult
from branchlore.models.worktree import Worktree
from branchlore.paths import database_path
from branchlore.services.git.backend import GitBackend, create_backend
from branchlore.services.git.merge import MergeEngine
from branchlore.services.git.repository import RepositoryStore
from branchlore.services.git.worktrees import WorktreeProvisioner
from branchlore.services.storage_service import FileSystem
from branchlore.utils.logging import get_logger
from branchlore.utils.threading import KeyedLock

if TYPE_CHECKING:
    from branchlore.services.database_service import ConnectionCache

logger = get_logger(__name__)


class BranchRepositoryManager:
    """Maps branch names to live database files.

    Lifecycle: UNINITIALIZED -> INITIALIZING -> READY. Every operation other
    than :meth:`init` requires READY. A failed init returns to UNINITIALIZED.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        backend: Optional[GitBackend] = None,
        cache: Optional["ConnectionCache"] = None,
    ):
        """Initialize the manager without touching the filesystem.

        Args:
            config: Configuration (defaults to Config())
            backend: Git backend to use instead of the configured one
            cache: Resource cache notified when a branch's files change or vanish
        """
        self._config = config or Config()
        self._backend = backend
        self._cache = cache
        self._state = RepositoryState.UNINITIALIZED
        self._state_lock = threading.Lock()
        self._repo_lock = threading.RLock()
        self._branch_locks = KeyedLock()
        self._store: Optional[RepositoryStore] = None
        self._provisioner: Optional[WorktreeProvisioner] = None
        self._merger: Optional[MergeEngine] = None

    # -- Lifecycle -------------------------------------------------------------

    @property
    def state(self) -> RepositoryState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is RepositoryState.READY

    @property
    def config(self) -> Config:
        return self._config

    @property
    def trunk(self) -> str:
        return self._config.trunk_branch

    @property
    def cache(self) -> Optional["ConnectionCache"]:
        return self._cache

    @property
    def repo_root(self) -> Path:
        self._require_ready("repo_root")
        return self._store.root

    def init(self, path: Optional[Union[str, Path]] = None) -> None:
        """Open or create the repository and become READY.

        Calling init on a READY manager is a no-op.

        Args:
            path: Repository root; defaults to the configured repo_path

        Raises:
            RepositoryIOError: If the repository cannot be opened or created
        """
        with self._state_lock:
            if self._state is RepositoryState.READY:
                return
            if self._state is RepositoryState.INITIALIZING:
                raise NotInitializedError("init")
            self._state = RepositoryState.INITIALIZING

        try:
            backend = self._build_backend(path)
            store = RepositoryStore(
                backend,
                trunk=self._config.trunk_branch,
                worktree_base=self._config.worktree_base,
                db_filename=self._config.db_filename,
            )
            with self._repo_lock:
                created = store.initialize()

            provisioner = WorktreeProvisioner(
                backend,
                store,
                FileSystem(self._config),
                self._repo_lock,
                branch_locks=self._branch_locks,
                auto_create_branches=self._config.auto_create_branches,
            )
            self._store = store
            self._provisioner = provisioner
            self._merger = MergeEngine(backend, provisioner, self._repo_lock)
        except BaseException:
            with self._state_lock:
                self._state = RepositoryState.UNINITIALIZED
            raise

        with self._state_lock:
            self._state = RepositoryState.READY
        logger.debug(f"Repository {'created' if created else 'opened'} at {store.root}")

    def _build_backend(self, path: Optional[Union[str, Path]]) -> GitBackend:
        if path is not None:
            self._config = self._config.with_overrides(repo_path=str(path))
        if self._backend is None:
            return create_backend(self._config)
        if path is not None and Path(path).absolute() != self._backend.repo_path.absolute():
            raise ValueError(
                f"Backend is bound to {self._backend.repo_path}, cannot initialize {path}"
            )
        return self._backend

    def _require_ready(self, operation: str) -> None:
        if self._state is not RepositoryState.READY:
            raise NotInitializedError(operation)

    # -- Branches --------------------------------------------------------------

    def create_branch(self, name: str) -> Branch:
        """Create a branch at the trunk's current revision."""
        self._require_ready("create_branch")
        with self._repo_lock:
            return self._store.create_branch(name)

    def get_branch(self, name: str) -> Branch:
        self._require_ready("get_branch")
        return self._store.get_branch(name)

    def list_branches(self) -> List[Branch]:
        self._require_ready("list_branches")
        return self._store.list_branches()

    def delete_branch(self, name: str) -> None:
        """Delete a branch together with its worktree.

        Raises:
            BranchProtectedError: If ``name`` is the trunk
            BranchNotFoundError: If no such branch exists
        """
        self._require_ready("delete_branch")
        with self._repo_lock:
            if name != self.trunk:
                self._store.get_branch(name)
                if self._cache is not None:
                    self._cache.evict(name)
                self._provisioner.remove_worktree(name)
            self._store.delete_branch(name)

    # -- Databases -------------------------------------------------------------

    def resolve_database_path(self, branch: str) -> Path:
        """Path of the database file for ``branch``, provisioning its worktree.

        The file itself may not exist yet; opening it is the caller's job.
        """
        self._require_ready("resolve_database_path")
        worktree = self._provisioner.ensure_worktree(branch)
        return database_path(worktree, self._config.db_filename)

    def commit_branch(self, branch: str, message: Optional[str] = None) -> Branch:
        """Commit the branch's database file and return the branch afterwards.

        The revision is unchanged when the branch has no worktree or nothing
        changed since the last commit.
        """
        self._require_ready("commit_branch")
        self._store.get_branch(branch)
        worktree = self._provisioner.worktree_path(branch)
        with self._repo_lock:
            if worktree.is_dir():
                self._store.commit_branch(worktree, message or DEFAULT_COMMIT_MESSAGE)
            return self._store.get_branch(branch)

    def merge(self, source: str, target: str) -> MergeResult:
        """Merge ``source`` into ``target``; conflicts come back in the result.

        An unknown ``source`` is an ordinary failed merge. An unknown
        ``target`` cannot be checked out.

        Raises:
            MergeCheckoutError: If the target cannot be checked out
        """
        self._require_ready("merge")

        result = self._merger.merge(source, target)
        if result.success and self._cache is not None:
            # The target's files were rewritten underneath any open handle
            self._cache.evict(target)
        return result

    # -- Inspection --------------------------------------------------------------

    def current_revision(self) -> str:
        self._require_ready("current_revision")
        return self._store.current_revision()

    def list_worktrees(self) -> List[Worktree]:
        self._require_ready("list_worktrees")
        return self._provisioner.list_worktrees()
