"""Local git operations for reverts and fast-forwards."""

import subprocess
from pathlib import Path
from typing import List, Optional

from ..errors import GitCommandError, RevertConflict
from ..utils import get_logger


class GitTool:
    """
    Thin wrapper around the git CLI for one working tree.

    History is only ever appended to: there is no reset, rebase or forced
    push here.
    """

    def __init__(self, work_dir: Optional[Path] = None, remote: Optional[str] = "origin"):
        """
        Initialize git tool.

        Args:
            work_dir: Working tree (defaults to cwd)
            remote: Remote to sync with and push to; None for purely local use
        """
        self.work_dir = Path(work_dir) if work_dir else Path.cwd()
        self.remote = remote
        self.logger = get_logger()

    def _run(self, *args: str, check: bool = True) -> subprocess.CompletedProcess:
        result = subprocess.run(
            ["git", *args],
            cwd=str(self.work_dir),
            capture_output=True,
            text=True,
        )
        if check and result.returncode != 0:
            raise GitCommandError(list(args), result.stderr or result.stdout)
        return result

    def rev_parse(self, ref: str) -> str:
        return self._run("rev-parse", "--verify", f"{ref}^{{commit}}").stdout.strip()

    def head(self, branch: str) -> str:
        """Current head sha of a local branch."""
        return self.rev_parse(f"refs/heads/{branch}")

    def parents(self, sha: str) -> List[str]:
        """Parent shas of a commit (two or more for merge commits)."""
        line = self._run("rev-list", "--parents", "-n", "1", sha).stdout.split()
        return line[1:]

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        result = self._run("merge-base", "--is-ancestor", ancestor, descendant, check=False)
        if result.returncode not in (0, 1):
            raise GitCommandError(["merge-base", "--is-ancestor", ancestor, descendant], result.stderr)
        return result.returncode == 0

    def changed_paths(self, base: str, head: str) -> List[str]:
        """Paths that differ between two commits."""
        out = self._run("diff", "--name-only", base, head).stdout
        return [line for line in out.splitlines() if line.strip()]

    def tree(self, ref: str) -> str:
        """Tree object id of a commit."""
        return self._run("rev-parse", f"{ref}^{{tree}}").stdout.strip()

    def checkout(self, branch: str) -> None:
        self._run("checkout", "--quiet", branch)

    def checkout_detached(self, sha: str) -> None:
        """Check out a commit without moving any branch."""
        self._run("checkout", "--quiet", "--detach", sha)

    def sync(self, branch: str) -> None:
        """Bring the local branch up to date with the remote (fast-forward only)."""
        if not self.remote:
            return
        self._run("fetch", "--quiet", self.remote, branch)
        self._run("merge", "--ff-only", "--quiet", f"{self.remote}/{branch}")

    def revert(self, sha: str, mainline: Optional[int] = None, message: Optional[str] = None) -> str:
        """
        Apply the inverse of a commit as a new commit on the current branch.

        Args:
            sha: Commit to revert
            mainline: Parent number to revert against (merge commits)
            message: Extra paragraph appended to the commit message

        Returns:
            Sha of the new revert commit

        Raises:
            RevertConflict: Inverse patch does not apply; nothing is committed
        """
        args = ["revert", "--no-edit"]
        if mainline is not None:
            args += ["-m", str(mainline)]
        args.append(sha)

        result = self._run(*args, check=False)
        if result.returncode != 0:
            conflicted = self._run("diff", "--name-only", "--diff-filter=U", check=False).stdout.split()
            self._run("revert", "--abort", check=False)
            if not conflicted:
                raise GitCommandError(args, result.stderr or result.stdout)
            raise RevertConflict(sha, conflicted)

        if message:
            subject = self._run("log", "-1", "--format=%B").stdout.rstrip()
            self._run("commit", "--amend", "--quiet", "-m", f"{subject}\n\n{message}")

        new_sha = self.rev_parse("HEAD")
        self.logger.info(f"Reverted {sha[:12]} as {new_sha[:12]}")
        return new_sha

    def update_branch(self, branch: str, sha: str) -> None:
        """
        Move a branch to a new commit without forcing.

        With a remote this is a plain push (the server rejects
        non-fast-forwards). Without one the local ref is compare-and-swapped.
        """
        if self.remote:
            self._run("push", "--quiet", self.remote, f"{sha}:refs/heads/{branch}")
            return
        old = self.head(branch)
        self._run("update-ref", f"refs/heads/{branch}", sha, old)

    def push(self, branch: str) -> None:
        if not self.remote:
            return
        self._run("push", "--quiet", self.remote, f"refs/heads/{branch}:refs/heads/{branch}")
