"""Merge engine: file-level merges between branches."""

import threading
from pathlib import Path
from typing import List

from branchlore.constants import CONFLICT_MARKER
from branchlore.exceptions import MergeCheckoutError
from branchlore.models.merge import MergeResult
from branchlore.services.git.backend import GitBackend
from branchlore.services.git.worktrees import WorktreeProvisioner
from branchlore.utils.logging import get_logger

logger = get_logger(__name__)


def parse_conflicts(output: str) -> List[str]:
    """Every line of merge output that reports a conflict, in order, trimmed."""
    return [line.strip() for line in output.splitlines() if CONFLICT_MARKER in line]


class MergeEngine:
    """Merges one branch into another under the repository-wide lock."""

    def __init__(self, backend: GitBackend, provisioner: WorktreeProvisioner, repo_lock: threading.RLock):
        self.backend = backend
        self.provisioner = provisioner
        self._repo_lock = repo_lock

    def merge(self, source: str, target: str) -> MergeResult:
        """Merge ``source`` into ``target``.

        The merge runs in the target's worktree when it has one; otherwise the
        target is checked out in the primary working copy, which is detached
        again afterwards. A conflicted merge is aborted, leaving the working
        copy as it was.

        Returns:
            MergeResult; conflicts are reported here, not raised

        Raises:
            MergeCheckoutError: If the target cannot be checked out
        """
        with self._repo_lock:
            worktree = self.provisioner.find_worktree(target)
            if worktree is not None:
                workdir = Path(worktree.path)
                use_primary = False
            else:
                workdir = self.backend.repo_path
                use_primary = True
                checkout = self.backend.checkout(target, cwd=workdir)
                if not checkout.ok:
                    raise MergeCheckoutError(
                        target, MergeResult(success=False, conflicts=[], message=checkout.output)
                    )

            logger.debug(f"Merging {source} into {target} in {workdir}")
            try:
                return self._merge_in(source, workdir)
            finally:
                if use_primary:
                    self.backend.detach_head(cwd=workdir)

    def _merge_in(self, source: str, workdir: Path) -> MergeResult:
        result = self.backend.merge(source, cwd=workdir)
        if result.ok:
            return MergeResult(success=True, conflicts=[], message=result.output)

        conflicts = parse_conflicts(result.output)
        if conflicts:
            logger.debug(f"Merge stopped on {len(conflicts)} conflict(s), aborting")
            self.backend.abort_merge(cwd=workdir)
        return MergeResult(success=False, conflicts=conflicts, message=result.output)
