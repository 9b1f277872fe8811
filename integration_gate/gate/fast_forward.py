"""Fast-forward of the stable branch to a validated integration head."""

from typing import Protocol

from github import GithubException

from ..errors import FastForwardConflict, GitCommandError
from ..models import FastForwardResult
from ..utils import get_logger
from .locks import BranchLocks


class BranchStore(Protocol):
    """Branch heads and ref updates; implemented by GitHubTool and GitTool."""

    def head(self, branch: str) -> str:
        ...

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        ...

    def update_branch(self, branch: str, sha: str) -> None:
        ...


class FastForwarder:
    """
    Moves the stable branch forward, never sideways.

    Handles:
    - Ancestry check (stable head must be an ancestor of the target)
    - Serialization against other fast-forwards and reverts
    - Re-checking ancestry inside the lock on every attempt
    """

    def __init__(
        self,
        store: BranchStore,
        locks: BranchLocks,
        stable_branch: str = "main",
        integration_branch: str = "dmz",
    ):
        self.store = store
        self.locks = locks
        self.stable_branch = stable_branch
        self.integration_branch = integration_branch
        self.logger = get_logger()

    async def check_fast_forward(self, target_sha: str) -> tuple[bool, str]:
        """
        Check if the stable branch can be fast-forwarded to a commit.

        Returns:
            Tuple of (possible, reason)
        """
        stable_sha = self.store.head(self.stable_branch)
        if stable_sha == target_sha:
            return True, "Already up to date"
        if not self.store.is_ancestor(stable_sha, target_sha):
            return False, f"{self.stable_branch} ({stable_sha[:12]}) is not an ancestor of {target_sha[:12]}"
        return True, "OK"

    async def fast_forward(self, target_sha: str) -> FastForwardResult:
        """
        Fast-forward the stable branch to target_sha.

        Raises:
            FastForwardConflict: The update would not be a fast-forward.
                Never resolved by force or merge commit.
        """
        async with self.locks.hold(self.stable_branch, self.integration_branch):
            stable_sha = self.store.head(self.stable_branch)

            if stable_sha == target_sha:
                self.logger.info(f"{self.stable_branch} already at {target_sha[:12]}")
                return FastForwardResult(
                    branch=self.stable_branch,
                    previous_sha=stable_sha,
                    new_sha=target_sha,
                    success=True,
                    already_up_to_date=True,
                )

            if not self.store.is_ancestor(stable_sha, target_sha):
                raise FastForwardConflict(self.stable_branch, stable_sha, target_sha)

            # The target must still be on the integration branch
            integration_sha = self.store.head(self.integration_branch)
            if not self.store.is_ancestor(target_sha, integration_sha):
                raise FastForwardConflict(self.integration_branch, target_sha, integration_sha)

            try:
                self.store.update_branch(self.stable_branch, target_sha)
            except GithubException as e:
                if e.status != 422:
                    raise
                # Another writer moved the branch between our check and the update
                raise FastForwardConflict(
                    self.stable_branch, self.store.head(self.stable_branch), target_sha
                ) from e
            except GitCommandError as e:
                if "rejected" not in e.output and "non-fast-forward" not in e.output:
                    raise
                raise FastForwardConflict(
                    self.stable_branch, self.store.head(self.stable_branch), target_sha
                ) from e

            self.logger.info(f"Fast-forwarded {self.stable_branch}: {stable_sha[:12]} -> {target_sha[:12]}")
            return FastForwardResult(
                branch=self.stable_branch,
                previous_sha=stable_sha,
                new_sha=target_sha,
                success=True,
            )

    async def dry_run(self, target_sha: str) -> dict:
        """Report whether a fast-forward would succeed without performing it."""
        possible, reason = await self.check_fast_forward(target_sha)
        return {
            "branch": self.stable_branch,
            "target_sha": target_sha,
            "possible": possible,
            "reason": reason,
        }
