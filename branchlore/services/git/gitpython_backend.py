"""GitPython-backed implementation of the git backend."""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, List, Optional

import git

from branchlore.exceptions import RepositoryIOError
from branchlore.services.git.backend import GitBackend, GitResult, PathLike, RefInfo
from branchlore.utils.logging import get_logger

logger = get_logger(__name__)


def describe_git_error(e: git.exc.GitCommandError) -> str:
    """Build an informative message from a GitCommandError."""
    command = e.command if hasattr(e, "command") else "git"
    if isinstance(command, (list, tuple)):
        command = " ".join(str(part) for part in command)
    stderr = (e.stderr if hasattr(e, "stderr") else str(e)).strip()
    status = e.status if hasattr(e, "status") else "unknown"

    if stderr:
        return f"'{command}' failed (exit {status}): {stderr}"
    return f"'{command}' failed with exit code {status}"


class GitPythonBackend(GitBackend):
    """Backend that uses GitPython's object model for references and commits.

    Porcelain commands (worktree, checkout, merge) run through GitPython's
    command wrapper so they share its timeout handling.
    """

    def _get_repo(self) -> git.Repo:
        """Get a fresh git.Repo instance.

        Creates a new repo instance for each call to ensure thread safety.
        GitPython repos are lightweight - they don't clone, just open the existing repo.

        Returns:
            git.Repo: A fresh repository instance
        """
        repo = git.Repo(self.repo_path)
        repo.git.update_environment(**self.git_environment())
        return repo

    @contextmanager
    def _repo(self, operation: str) -> Iterator[git.Repo]:
        """Open the repository and translate GitPython failures."""
        with self._translate_errors(operation):
            repo = self._get_repo()
            try:
                yield repo
            finally:
                repo.close()

    @contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except git.exc.GitCommandError as e:
            raise RepositoryIOError(operation, describe_git_error(e), e.stderr) from e
        except (git.exc.GitError, OSError, ValueError) as e:
            raise RepositoryIOError(operation, str(e)) from e

    def run(self, *args: str, cwd: Optional[PathLike] = None) -> GitResult:
        command = ("git", "-C", str(cwd or self.repo_path)) + tuple(args)
        try:
            status, stdout, stderr = git.Git().execute(
                list(command),
                with_extended_output=True,
                with_exceptions=False,
                kill_after_timeout=self.timeout,
                env=self.git_environment(),
            )
        except git.exc.GitCommandNotFound as e:
            raise RepositoryIOError(args[0] if args else "git", f"git executable not found: {e}") from e

        # GitPython reports a killed command through stderr
        if status != 0 and "Timeout:" in (stderr or ""):
            raise RepositoryIOError(
                args[0] if args else "git",
                f"'{' '.join(command)}' did not finish within {self.timeout:g}s",
                stderr,
            )

        logger.debug(f"{' '.join(command)} -> exit {status}")
        return GitResult(command=command, status=status, stdout=stdout or "", stderr=stderr or "")

    def is_repository(self) -> bool:
        try:
            repo = git.Repo(self.repo_path)
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
            return False
        repo.close()
        return True

    def init_repository(self, initial_branch: str) -> None:
        with self._translate_errors("init"):
            repo = git.Repo.init(self.repo_path, mkdir=True)
            try:
                # Name the unborn branch explicitly; init.defaultBranch varies by host
                repo.git.symbolic_ref("HEAD", f"refs/heads/{initial_branch}")
            finally:
                repo.close()
        logger.debug(f"Initialized repository at {self.repo_path} on {initial_branch}")

    def head_revision(self) -> Optional[str]:
        with self._repo("head") as repo:
            if not repo.head.is_valid():
                return None
            return repo.head.commit.hexsha

    def branch_revision(self, name: str) -> Optional[str]:
        with self._repo("resolve_branch") as repo:
            head = git.Head(repo, git.Head.to_full_path(name))
            if not head.is_valid():
                return None
            return head.commit.hexsha

    def list_branch_refs(self) -> List[RefInfo]:
        with self._repo("list_branches") as repo:
            return [
                RefInfo(
                    name=head.name,
                    revision=head.commit.hexsha,
                    authored_at=datetime.fromtimestamp(head.commit.authored_date, tz=timezone.utc),
                )
                for head in repo.heads
            ]

    def commit_authored_at(self, revision: str) -> datetime:
        with self._repo("commit_info") as repo:
            commit = repo.commit(revision)
            return datetime.fromtimestamp(commit.authored_date, tz=timezone.utc)

    def create_branch_ref(self, name: str, revision: str) -> None:
        with self._repo("create_branch") as repo:
            repo.create_head(name, commit=revision)

    def delete_branch_ref(self, name: str) -> None:
        with self._repo("delete_branch") as repo:
            repo.delete_head(name, force=True)

    def commit_empty(self, message: str) -> str:
        actor = git.Actor(self.author_name, self.author_email)
        with self._repo("commit") as repo:
            commit = repo.index.commit(message, author=actor, committer=actor)
            return commit.hexsha
