"""Narrow interface over the version-control tool.

The repository store, worktree provisioner and merge engine talk to git only
through :class:`GitBackend`. Reference and object primitives are abstract and
implemented per backend; porcelain commands go through :meth:`GitBackend.run`.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple, Union

from branchlore.constants import DEFAULT_AUTHOR_EMAIL, DEFAULT_AUTHOR_NAME, DEFAULT_GIT_TIMEOUT
from branchlore.exceptions import RepositoryIOError

if TYPE_CHECKING:
    from branchlore.config import Config

PathLike = Union[str, Path]


@dataclass(frozen=True)
class GitResult:
    """Outcome of one git command."""

    command: Tuple[str, ...]
    status: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.status == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, the way a terminal would show them."""
        parts = [part for part in (self.stdout, self.stderr) if part]
        return "\n".join(parts)

    def describe(self) -> str:
        """One-line description for error messages."""
        command = " ".join(self.command)
        detail = self.output.strip()
        if detail:
            return f"'{command}' failed (exit {self.status}): {detail}"
        return f"'{command}' failed with exit code {self.status}"


@dataclass(frozen=True)
class RefInfo:
    """A branch reference and the commit it points at."""

    name: str
    revision: str
    authored_at: datetime


class GitBackend(ABC):
    """Abstract access to one on-disk git repository.

    A backend is bound to a repository path at construction time; the
    repository itself need not exist until :meth:`init_repository` runs.
    """

    def __init__(
        self,
        repo_path: PathLike,
        timeout: float = DEFAULT_GIT_TIMEOUT,
        author_name: str = DEFAULT_AUTHOR_NAME,
        author_email: str = DEFAULT_AUTHOR_EMAIL,
    ):
        """Initialize the backend.

        Args:
            repo_path: Root of the repository (its primary working copy)
            timeout: Seconds after which a git command is killed
            author_name: Name recorded on every commit
            author_email: Email recorded on every commit
        """
        self.repo_path = Path(repo_path)
        self.timeout = timeout
        self.author_name = author_name
        self.author_email = author_email

    def git_environment(self) -> Dict[str, str]:
        """Environment applied to every git invocation."""
        return {
            "GIT_AUTHOR_NAME": self.author_name,
            "GIT_AUTHOR_EMAIL": self.author_email,
            "GIT_COMMITTER_NAME": self.author_name,
            "GIT_COMMITTER_EMAIL": self.author_email,
            # Conflict detection reads git's messages; keep them untranslated
            "LANGUAGE": "C",
            "LC_ALL": "C",
            "GIT_TERMINAL_PROMPT": "0",
        }

    # -- Primitives ----------------------------------------------------------

    @abstractmethod
    def run(self, *args: str, cwd: Optional[PathLike] = None) -> GitResult:
        """Run ``git <args>`` in ``cwd`` (default: the repository root).

        A non-zero exit is reported through the result, not raised.

        Raises:
            RepositoryIOError: If git cannot be started or exceeds the timeout
        """

    @abstractmethod
    def is_repository(self) -> bool:
        """True if a repository exists at exactly the bound path."""

    @abstractmethod
    def init_repository(self, initial_branch: str) -> None:
        """Create an empty repository whose HEAD names ``initial_branch``."""

    @abstractmethod
    def head_revision(self) -> Optional[str]:
        """Revision HEAD resolves to, or None when there are no commits."""

    @abstractmethod
    def branch_revision(self, name: str) -> Optional[str]:
        """Revision branch ``name`` points at, or None if it does not exist."""

    @abstractmethod
    def list_branch_refs(self) -> List[RefInfo]:
        """Every local branch, in reference order."""

    @abstractmethod
    def commit_authored_at(self, revision: str) -> datetime:
        """Author timestamp of a commit, timezone-aware."""

    @abstractmethod
    def create_branch_ref(self, name: str, revision: str) -> None:
        """Create branch ``name`` at ``revision``; fails if it exists."""

    @abstractmethod
    def delete_branch_ref(self, name: str) -> None:
        """Delete branch ``name`` regardless of merge state."""

    @abstractmethod
    def commit_empty(self, message: str) -> str:
        """Commit an empty tree on HEAD and return the new revision."""

    # -- Porcelain shared by every backend ------------------------------------

    def check(self, operation: str, *args: str, cwd: Optional[PathLike] = None) -> GitResult:
        """Run a command and raise if it fails."""
        result = self.run(*args, cwd=cwd)
        if not result.ok:
            raise RepositoryIOError(operation, result.describe(), result.output)
        return result

    def exclude_paths(self, patterns: List[str]) -> None:
        """Append ignore patterns to .git/info/exclude (shared by all worktrees)."""
        exclude_file = self.repo_path / ".git" / "info" / "exclude"
        try:
            exclude_file.parent.mkdir(parents=True, exist_ok=True)
            existing = exclude_file.read_text() if exclude_file.exists() else ""
            missing = [p for p in patterns if p not in existing.splitlines()]
            if missing:
                with open(exclude_file, "a") as f:
                    if existing and not existing.endswith("\n"):
                        f.write("\n")
                    f.write("\n".join(missing) + "\n")
        except OSError as e:
            raise RepositoryIOError("exclude", str(e)) from e

    def detach_head(self, cwd: Optional[PathLike] = None) -> None:
        """Detach HEAD at its current commit, releasing the checked-out branch."""
        self.check("detach", "checkout", "--detach", cwd=cwd)

    def checkout(self, branch: str, cwd: Optional[PathLike] = None) -> GitResult:
        # "--" keeps an unknown branch from being read as a path
        return self.run("checkout", branch, "--", cwd=cwd)

    def merge(self, source: str, cwd: Optional[PathLike] = None) -> GitResult:
        return self.run("merge", "--no-edit", source, cwd=cwd)

    def abort_merge(self, cwd: Optional[PathLike] = None) -> None:
        self.check("merge_abort", "merge", "--abort", cwd=cwd)

    def add_worktree(self, path: PathLike, branch: str) -> GitResult:
        return self.run("worktree", "add", str(path), branch)

    def remove_worktree(self, path: PathLike) -> GitResult:
        return self.run("worktree", "remove", "--force", str(path))

    def prune_worktrees(self) -> None:
        self.check("worktree_prune", "worktree", "prune")

    def list_worktrees_porcelain(self) -> str:
        return self.check("worktree_list", "worktree", "list", "--porcelain").stdout

    def commit_paths(self, cwd: PathLike, paths: List[str], message: str) -> bool:
        """Stage ``paths`` in ``cwd`` and commit them.

        Returns:
            True if a commit was made, False if nothing changed
        """
        self.check("add", "add", "--", *paths, cwd=cwd)
        # diff --cached --quiet exits 1 when something is staged
        staged = self.run("diff", "--cached", "--quiet", cwd=cwd)
        if staged.ok:
            return False
        if staged.status != 1:
            raise RepositoryIOError("diff", staged.describe(), staged.output)
        self.check("commit", "commit", "-m", message, cwd=cwd)
        return True


def create_backend(config: "Config", repo_path: Optional[PathLike] = None) -> GitBackend:
    """Build the backend selected by ``config.backend``."""
    from branchlore.services.git.gitpython_backend import GitPythonBackend
    from branchlore.services.git.subprocess_backend import SubprocessBackend

    backends = {
        "gitpython": GitPythonBackend,
        "subprocess": SubprocessBackend,
    }
    backend_cls = backends.get(config.backend)
    if backend_cls is None:
        raise ValueError(f"Unknown git backend '{config.backend}'")
    return backend_cls(
        repo_path if repo_path is not None else config.resolved_repo_path(),
        timeout=config.git_timeout,
        author_name=config.author_name,
        author_email=config.author_email,
    )
