"""Tests for best-effort status reporting."""

from github import GithubException

from conftest import FakeGitHub

from integration_gate.gate import Notifier
from integration_gate.models import (
    ChangeRequest,
    CheckName,
    CheckOutcome,
    CheckResult,
    FlowKind,
    GateDecision,
    GateOutcome,
    GateState,
    RevertRecord,
    ValidationRun,
)
from integration_gate.utils import STATUS_MARKER, render_summary


def failed_outcome(head_sha: str = "s1") -> GateOutcome:
    run = ValidationRun(
        source_ref="feature/skate",
        head_sha=head_sha,
        unit="kit-nextjs-skate-park",
        results=(
            CheckResult(check=CheckName.LINT, outcome=CheckOutcome.FAILED, diagnostics="app.tsx: 'x' is unused"),
            CheckResult(check=CheckName.FORMAT, outcome=CheckOutcome.SKIPPED),
        ),
    )
    return GateOutcome(
        flow=FlowKind.CHANGE_REQUEST,
        source_ref="feature/skate",
        head_sha=head_sha,
        state=GateState.FAILED,
        decision=GateDecision.BLOCK,
        affected_units={"kit-nextjs-skate-park"},
        runs=[run],
    )


def make_cr() -> ChangeRequest:
    return ChangeRequest(number=7, source_ref="feature/skate", target_branch="dmz", head_sha="s1")


class TestNotifier:
    """Tests for update-in-place status messages."""

    def test_two_posts_yield_one_comment(self):
        """Given repeated reports, the same comment is edited."""
        # Given
        github = FakeGitHub()
        notifier = Notifier(github)
        cr = make_cr()

        # When
        first = notifier.post_status(cr, failed_outcome())
        second = notifier.post_status(cr, failed_outcome())

        # Then
        assert first == second
        assert len(github.comments[7]) == 1
        assert cr.status_message_id == first

    def test_existing_marker_comment_is_reused(self):
        """Given a marker comment from an earlier job, it is found and edited."""
        # Given
        github = FakeGitHub()
        existing = github.create_comment(7, f"{STATUS_MARKER}\nold")
        notifier = Notifier(github)

        # When
        message_id = notifier.post_status(make_cr(), failed_outcome())

        # Then
        assert message_id == existing
        assert "old" not in github.comments[7][existing]

    def test_deleted_comment_is_recreated(self):
        """Given a stale message id, a fresh comment is created."""
        # Given
        github = FakeGitHub()
        notifier = Notifier(github)
        cr = make_cr()
        cr.status_message_id = 42

        # When
        message_id = notifier.post_status(cr, failed_outcome())

        # Then
        assert message_id != 42
        assert list(github.comments[7]) == [message_id]

    def test_failure_is_swallowed(self):
        """Given a GitHub outage, post_status returns None and does not raise."""
        # Given
        github = FakeGitHub()
        github.fail_with = GithubException(500, {"message": "Server Error"}, None)
        notifier = Notifier(github)

        # When / Then
        assert notifier.post_status(make_cr(), failed_outcome()) is None
        assert notifier.publish_commit_status("s1", failed_outcome()) is False

    def test_disabled_posts_nothing(self):
        github = FakeGitHub()
        assert Notifier(github, enabled=False).post_status(make_cr(), failed_outcome()) is None
        assert github.comments == {}

    def test_tracking_issue(self):
        # Given
        github = FakeGitHub()
        record = RevertRecord(
            target_sha="a" * 40,
            reason="broke checkout",
            revert_sha="b" * 40,
            branch="dmz",
            actor="alice",
            notified_change_requests=(3, 5),
        )

        # When
        number = Notifier(github).open_tracking_issue(record)

        # Then
        title, body, labels = github.issues[0]
        assert number == 1
        assert title == f"Revert of {'a' * 12} on dmz"
        assert "broke checkout" in body
        assert "#3, #5" in body
        assert labels == ["revert"]


class TestRenderSummary:
    """Tests for the status message body."""

    def test_summary_lists_failing_check_with_diagnostics(self):
        # When
        body = render_summary(failed_outcome())

        # Then
        assert body.startswith(STATUS_MARKER)
        assert "FAILED" in body
        assert "| `kit-nextjs-skate-park` | FAIL |" in body
        assert "`lint` (failed)" in body
        assert "'x' is unused" in body
        assert "`format`" not in body

    def test_long_diagnostics_truncated(self):
        # Given
        outcome = failed_outcome()
        run = outcome.runs[0]
        long_output = "noise\n" * 2000 + "the real error"
        outcome.runs = [ValidationRun(
            source_ref=run.source_ref,
            head_sha=run.head_sha,
            unit=run.unit,
            results=(CheckResult(check=CheckName.BUILD, outcome=CheckOutcome.FAILED, diagnostics=long_output),),
        )]

        # When
        body = render_summary(outcome)

        # Then
        assert "the real error" in body
        assert len(body) < 3000

    def test_no_units_affected(self):
        outcome = GateOutcome(
            flow=FlowKind.CHANGE_REQUEST,
            source_ref="docs",
            head_sha="s1",
            state=GateState.PASSED,
            decision=GateDecision.ALLOW,
        )
        assert "No units affected" in render_summary(outcome)
