"""Best-effort reporting to the change request host."""

from typing import Optional

from github import GithubException

from ..errors import NotificationFailure
from ..models import ChangeRequest, GateDecision, GateOutcome, GateState, RevertRecord
from ..tools import GitHubTool
from ..utils import (
    STATUS_MARKER,
    get_logger,
    render_revert_notice,
    render_summary,
    render_tracking_issue,
)


class Notifier:
    """
    Posts and updates gate status messages and tracking issues.

    Purely observational: every failure is logged as a NotificationFailure
    and swallowed, so reporting can never block or reverse a gate decision.
    """

    def __init__(self, github: Optional[GitHubTool] = None, enabled: bool = True):
        """
        Initialize notifier.

        Args:
            github: GitHub tool; None logs messages locally instead
            enabled: Post status comments at all
        """
        self.github = github
        self.enabled = enabled
        self.logger = get_logger("notifier")

    def _fail(self, action: str, error: Exception) -> None:
        failure = NotificationFailure(f"{action}: {error}")
        self.logger.warning(str(failure))

    def post_status(self, cr: ChangeRequest, outcome: GateOutcome) -> Optional[int]:
        """
        Post or update the status message for a change request.

        Reuses cr.status_message_id, then any earlier comment carrying the
        status marker, and only creates a new comment if neither exists.

        Returns:
            Comment id, or None if nothing was posted
        """
        body = render_summary(outcome)
        if not self.enabled or self.github is None:
            self.logger.info(f"Status for #{cr.number}: {outcome.state.value}")
            return None

        try:
            message_id = cr.status_message_id
            if message_id is None:
                message_id = self.github.find_comment(cr.number, STATUS_MARKER)

            if message_id is not None:
                try:
                    message_id = self.github.edit_comment(cr.number, message_id, body)
                except GithubException as e:
                    if e.status != 404:
                        raise
                    # Comment was deleted by hand
                    message_id = self.github.create_comment(cr.number, body)
            else:
                message_id = self.github.create_comment(cr.number, body)

        except GithubException as e:
            self._fail(f"status message for #{cr.number}", e)
            return None

        cr.status_message_id = message_id
        return message_id

    def publish_commit_status(self, sha: str, outcome: GateOutcome) -> bool:
        """Set the integration-gate commit status for a head commit."""
        if self.github is None:
            return False

        if outcome.superseded:
            state, description = "pending", "Superseded by a newer push"
        elif outcome.state == GateState.VALIDATING:
            state, description = "pending", "Validation in progress"
        elif outcome.decision == GateDecision.ALLOW:
            units = len(outcome.affected_units)
            state, description = "success", f"{units} unit(s) passed" if units else "No units affected"
        else:
            failed = sorted(run.unit for run in outcome.runs if not run.passed)
            state, description = "failure", f"Failed: {', '.join(failed)}" if failed else "Gate blocked"

        try:
            self.github.create_commit_status(sha, state, description)
            return True
        except GithubException as e:
            self._fail(f"commit status for {sha[:12]}", e)
            return False

    def open_tracking_issue(self, record: RevertRecord) -> Optional[int]:
        """Open the issue that tracks a revert. Returns the issue number."""
        title = f"Revert of {record.target_sha[:12]} on {record.branch}"
        body = render_tracking_issue(record)
        if self.github is None:
            self.logger.info(f"Tracking issue (not posted): {title}")
            return None

        try:
            return self.github.create_issue(title, body, labels=["revert"])
        except GithubException as e:
            self._fail("tracking issue", e)
            return None

    def notify_revert(self, cr_number: int, record: RevertRecord) -> bool:
        """Tell an open change request that a commit in its history was reverted."""
        if self.github is None:
            self.logger.info(f"Revert notice for #{cr_number} (not posted)")
            return False

        try:
            self.github.create_comment(cr_number, render_revert_notice(record))
            return True
        except GithubException as e:
            self._fail(f"revert notice for #{cr_number}", e)
            return False
