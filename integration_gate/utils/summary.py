"""Markdown summaries for gate outcomes and revert records."""

from typing import List

from ..models import CheckOutcome, GateOutcome, RevertRecord

STATUS_MARKER = "<!-- integration-gate:status -->"

# Keep comments well under GitHub's 65536 character limit
MAX_DIAGNOSTIC_CHARS = 1500


def _truncate(text: str, limit: int = MAX_DIAGNOSTIC_CHARS) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return "..." + text[-limit:]


def render_summary(outcome: GateOutcome) -> str:
    """
    Render a gate outcome as a status message body.

    The body always starts with STATUS_MARKER so an existing message can be
    found again and updated in place.
    """
    parts: List[str] = [STATUS_MARKER, f"## Integration Gate: {outcome.state.value.upper()}\n"]
    parts.append(f"Head: `{outcome.head_sha[:12]}` on `{outcome.source_ref}`\n")

    if outcome.superseded:
        parts.append("A newer push superseded this run. Waiting for its result.\n")

    if not outcome.affected_units:
        parts.append("No units affected by this change. Nothing to validate.\n")
    else:
        parts.append("| Unit | Result |")
        parts.append("|---|---|")
        for run in sorted(outcome.runs, key=lambda r: r.unit):
            parts.append(f"| `{run.unit}` | {'pass' if run.passed else 'FAIL'} |")
        parts.append("")

    failing = [
        (run.unit, result)
        for run in outcome.runs
        for result in run.results
        if result.outcome in (CheckOutcome.FAILED, CheckOutcome.TIMED_OUT)
    ]
    if failing:
        parts.append("### Failing checks\n")
        for unit, result in failing:
            parts.append(f"**{unit}** / `{result.check.value}` ({result.outcome.value})")
            if result.diagnostics.strip():
                parts.append("```")
                parts.append(_truncate(result.diagnostics))
                parts.append("```")
        parts.append("")

    if outcome.fast_forward is not None:
        ff = outcome.fast_forward
        if ff.success:
            parts.append(f"Fast-forwarded `{ff.branch}` to `{(ff.new_sha or '')[:12]}`.")
        else:
            parts.append(f"Fast-forward of `{ff.branch}` rejected: {ff.error}")

    # A rejected fast-forward already printed its error above
    if outcome.error and (outcome.fast_forward is None or outcome.fast_forward.success):
        parts.append(f"\n**Error:** {outcome.error}")

    parts.append("\n---\n*Reported by integration-gate*")
    return "\n".join(parts)


def render_tracking_issue(record: RevertRecord) -> str:
    """Body for the issue that tracks a revert."""
    lines = [
        f"Commit `{record.target_sha}` was reverted on `{record.branch}`.",
        "",
        f"- **Reason:** {record.reason}",
        f"- **Reverted commit:** `{record.target_sha}`",
        f"- **Revert commit:** `{record.revert_sha}`",
    ]
    if record.actor:
        lines.append(f"- **Requested by:** @{record.actor}")
    if record.notified_change_requests:
        linked = ", ".join(f"#{n}" for n in record.notified_change_requests)
        lines.append(f"- **Affected open change requests:** {linked}")
    lines.append("")
    lines.append("Re-land the change with a fix through a new change request.")
    return "\n".join(lines)


def render_revert_notice(record: RevertRecord) -> str:
    """Comment posted on open change requests that contain the reverted commit."""
    notice = (
        f"Heads up: `{record.target_sha[:12]}`, which is part of this change request's "
        f"history, was reverted on `{record.branch}` as `{record.revert_sha[:12]}`.\n\n"
        f"Reason: {record.reason}\n\n"
        "Rebase onto the current integration branch before merging."
    )
    if record.tracking_issue is not None:
        notice += f"\n\nTracked in #{record.tracking_issue}."
    return notice
