"""Git backend that shells out to the git executable for everything."""

import os
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from branchlore.exceptions import RepositoryIOError
from branchlore.services.git.backend import GitBackend, GitResult, PathLike, RefInfo
from branchlore.utils.logging import get_logger

logger = get_logger(__name__)

_REF_FORMAT = "%(refname)%09%(objectname)%09%(authordate:unix)"
_HEADS_PREFIX = "refs/heads/"


class SubprocessBackend(GitBackend):
    """Backend built on ``subprocess.run(["git", ...])``."""

    def run(self, *args: str, cwd: Optional[PathLike] = None) -> GitResult:
        command = ("git",) + tuple(args)
        workdir = Path(cwd) if cwd else self.repo_path
        env = os.environ.copy()
        env.update(self.git_environment())
        try:
            completed = subprocess.run(
                list(command),
                cwd=str(workdir),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=env,
            )
        except subprocess.TimeoutExpired as e:
            raise RepositoryIOError(
                args[0] if args else "git",
                f"'{' '.join(command)}' did not finish within {self.timeout:g}s",
            ) from e
        except FileNotFoundError as e:
            # Raised for a missing git binary and for a missing working directory
            raise RepositoryIOError(args[0] if args else "git", str(e)) from e
        except OSError as e:
            raise RepositoryIOError(args[0] if args else "git", str(e)) from e

        logger.debug(f"{' '.join(command)} (in {workdir}) -> exit {completed.returncode}")
        return GitResult(
            command=command,
            status=completed.returncode,
            stdout=completed.stdout.rstrip("\n"),
            stderr=completed.stderr.rstrip("\n"),
        )

    def is_repository(self) -> bool:
        if not self.repo_path.is_dir():
            return False
        result = self.run("rev-parse", "--show-toplevel")
        if not result.ok:
            return False
        # rev-parse walks up to parent repositories; only an exact match counts
        return os.path.realpath(result.stdout.strip()) == os.path.realpath(self.repo_path)

    def init_repository(self, initial_branch: str) -> None:
        try:
            self.repo_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RepositoryIOError("init", str(e)) from e
        self.check("init", "init")
        self.check("init", "symbolic-ref", "HEAD", f"{_HEADS_PREFIX}{initial_branch}")
        logger.debug(f"Initialized repository at {self.repo_path} on {initial_branch}")

    def _rev_parse(self, spec: str) -> Optional[str]:
        result = self.run("rev-parse", "--verify", "--quiet", spec)
        if result.ok:
            return result.stdout.strip()
        if result.status == 1:
            return None
        raise RepositoryIOError("rev_parse", result.describe(), result.output)

    def head_revision(self) -> Optional[str]:
        return self._rev_parse("HEAD^{commit}")

    def branch_revision(self, name: str) -> Optional[str]:
        return self._rev_parse(f"{_HEADS_PREFIX}{name}^{{commit}}")

    def list_branch_refs(self) -> List[RefInfo]:
        output = self.check(
            "list_branches", "for-each-ref", f"--format={_REF_FORMAT}", _HEADS_PREFIX
        ).stdout

        refs = []
        for line in output.splitlines():
            if not line.strip():
                continue
            refname, revision, timestamp = line.split("\t")
            refs.append(
                RefInfo(
                    name=refname[len(_HEADS_PREFIX):],
                    revision=revision,
                    authored_at=datetime.fromtimestamp(int(timestamp), tz=timezone.utc),
                )
            )
        return refs

    def commit_authored_at(self, revision: str) -> datetime:
        output = self.check("commit_info", "show", "-s", "--format=%at", revision).stdout
        return datetime.fromtimestamp(int(output.strip()), tz=timezone.utc)

    def create_branch_ref(self, name: str, revision: str) -> None:
        self.check("create_branch", "branch", name, revision)

    def delete_branch_ref(self, name: str) -> None:
        self.check("delete_branch", "branch", "-D", name)

    def commit_empty(self, message: str) -> str:
        self.check("commit", "commit", "--allow-empty", "-m", message)
        revision = self.head_revision()
        if revision is None:
            raise RepositoryIOError("commit", "HEAD does not resolve after commit")
        return revision
