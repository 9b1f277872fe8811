"""Revert controller: undo a commit on the integration branch."""

from dataclasses import replace
from typing import List, Optional

from github import GithubException

from ..errors import AuthorizationDenied, CommitNotOnBranch, GitCommandError
from ..models import RevertRecord
from ..tools import GitHubTool, GitTool
from ..utils import get_logger
from .authorization import REVERT_ACTION, Authorizer
from .locks import BranchLocks
from .notifier import Notifier


class RevertController:
    """
    Applies the inverse of a commit to the integration branch.

    Handles:
    - Authorization before any side effect
    - Clean revert as a new commit (history is never rewritten)
    - Conflict detection with full rollback
    - Tracking issue and notices on affected open change requests
    """

    def __init__(
        self,
        git: GitTool,
        authorizer: Authorizer,
        locks: BranchLocks,
        notifier: Optional[Notifier] = None,
        github: Optional[GitHubTool] = None,
        integration_branch: str = "dmz",
        push: bool = True,
    ):
        """
        Initialize revert controller.

        Args:
            git: Local working tree of the repository
            authorizer: Approval check evaluated outside the automation definition
            locks: Branch locks shared with the fast-forwarder
            notifier: Tracking issue and change request notices
            github: Used to find open change requests containing the commit
            integration_branch: Branch to revert on
            push: Publish the revert commit to the remote
        """
        self.git = git
        self.authorizer = authorizer
        self.locks = locks
        self.notifier = notifier
        self.github = github
        self.integration_branch = integration_branch
        self.push = push
        self.logger = get_logger("revert")

    async def revert(
        self,
        reason: str,
        commit: Optional[str] = None,
        actor: str = "",
    ) -> RevertRecord:
        """
        Revert a commit on the integration branch.

        Args:
            reason: Human-readable reason (required)
            commit: Commit to revert (default: integration branch head)
            actor: Who requested the revert

        Returns:
            RevertRecord of the applied revert

        Raises:
            ValueError: Missing reason
            AuthorizationDenied: Actor not allowed; nothing was changed
            CommitNotOnBranch: Commit never landed on the integration branch
            RevertConflict: Inverse patch does not apply; nothing was committed
        """
        if not reason or not reason.strip():
            raise ValueError("A reason is required to revert")
        reason = reason.strip()

        try:
            self.authorizer.authorize(actor, REVERT_ACTION)
        except AuthorizationDenied as e:
            self.logger.error(str(e))
            raise

        async with self.locks.hold(self.integration_branch):
            self.git.checkout(self.integration_branch)
            if self.push:
                self.git.sync(self.integration_branch)

            target = self.git.rev_parse(commit or self.integration_branch)
            if not self.git.is_ancestor(target, self.integration_branch):
                raise CommitNotOnBranch(target, self.integration_branch)

            parents = self.git.parents(target)
            # Merge commits are always reverted against their first parent
            mainline = 1 if len(parents) > 1 else None

            self.logger.info(f"Reverting {target[:12]} on {self.integration_branch}: {reason}")
            revert_sha = self.git.revert(target, mainline=mainline, message=f"Reason: {reason}")

            if self.push:
                try:
                    self.git.push(self.integration_branch)
                except GitCommandError:
                    self.logger.error(
                        f"Push of revert {revert_sha} (reverting {target[:12]}) was rejected; "
                        f"the commit exists only in {self.git.work_dir}"
                    )
                    raise

        record = RevertRecord(
            target_sha=target,
            reason=reason,
            revert_sha=revert_sha,
            branch=self.integration_branch,
            actor=actor,
        )
        return self._track(record)

    def _track(self, record: RevertRecord) -> RevertRecord:
        """Open the tracking issue and notify affected change requests."""
        affected = self._affected_change_requests(record.target_sha)
        record = replace(record, notified_change_requests=tuple(affected))

        if self.notifier is None:
            return record

        issue = self.notifier.open_tracking_issue(record)
        record = replace(record, tracking_issue=issue)

        for number in affected:
            self.notifier.notify_revert(number, record)

        self.logger.info(
            f"Revert {record.revert_sha[:12]} tracked in #{issue}; notified {len(affected)} change request(s)"
        )
        return record

    def _affected_change_requests(self, sha: str) -> List[int]:
        if self.github is None:
            return []
        try:
            numbers = self.github.open_change_requests_containing(sha, base=self.integration_branch)
        except GithubException as e:
            self.logger.warning(f"Could not list open change requests: {e}")
            return []
        # Each change request is notified exactly once
        return sorted(set(numbers))
