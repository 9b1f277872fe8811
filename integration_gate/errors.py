"""Exception taxonomy for the integration gate."""

from typing import List, Optional


class GateError(Exception):
    """Base exception for all integration gate errors."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class ConfigurationError(GateError):
    """Raised when gate or unit configuration is invalid or missing."""

    def __init__(self, message: str) -> None:
        super().__init__("CONFIGURATION_ERROR", message)


class ValidationFailure(GateError):
    """A unit's check pipeline failed. Recoverable: a new trigger re-runs it."""

    def __init__(self, message: str, unit: Optional[str] = None) -> None:
        self.unit = unit
        super().__init__("VALIDATION_FAILURE", message)


class CheckTimeout(ValidationFailure):
    """A check exceeded its wall-clock timeout."""

    def __init__(self, unit: str, check: str, timeout: float) -> None:
        self.check = check
        self.timeout = timeout
        super().__init__(f"{check} timed out after {timeout:g}s", unit=unit)
        self.code = "TIMEOUT"


class FastForwardConflict(GateError):
    """Stable branch head is not an ancestor of the target commit."""

    def __init__(self, branch: str, stable_sha: str, target_sha: str) -> None:
        self.branch = branch
        self.stable_sha = stable_sha
        self.target_sha = target_sha
        super().__init__(
            "FAST_FORWARD_CONFLICT",
            f"Cannot fast-forward {branch}: {stable_sha[:12]} is not an ancestor "
            f"of {target_sha[:12]}. Manual resolution required.",
        )


class RevertConflict(GateError):
    """The inverse patch does not apply cleanly."""

    def __init__(self, target_sha: str, paths: List[str]) -> None:
        self.target_sha = target_sha
        self.paths = list(paths)
        super().__init__(
            "REVERT_CONFLICT",
            f"Revert of {target_sha[:12]} conflicts in: {', '.join(self.paths) or 'unknown paths'}",
        )


class CommitNotOnBranch(GateError):
    """The commit to revert is not in the branch's history."""

    def __init__(self, sha: str, branch: str) -> None:
        self.sha = sha
        self.branch = branch
        super().__init__("NOT_ON_BRANCH", f"{sha[:12]} is not in the history of {branch}")


class AuthorizationDenied(GateError):
    """The actor is not allowed to perform the requested action."""

    def __init__(self, actor: str, action: str, reason: str = "") -> None:
        self.actor = actor
        self.action = action
        detail = f": {reason}" if reason else ""
        super().__init__("AUTHORIZATION_DENIED", f"{actor or '<unknown>'} may not {action}{detail}")


class NotificationFailure(GateError):
    """Posting a message failed. Logged by the notifier, never propagated."""

    def __init__(self, message: str) -> None:
        super().__init__("NOTIFICATION_FAILURE", message)


class InvalidTransition(GateError):
    """A gate state change not permitted by the state machine."""

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__("INVALID_TRANSITION", f"{current} -> {target} is not allowed")


class GitCommandError(GateError):
    """A git command failed for a reason other than a revert conflict."""

    def __init__(self, args: List[str], output: str) -> None:
        self.args_list = list(args)
        self.output = output
        super().__init__("GIT_ERROR", f"git {' '.join(args)} failed: {output.strip()}")


class UnsupportedEvent(GateError):
    """The triggering CI event is not one the gate handles."""

    def __init__(self, event_name: str) -> None:
        self.event_name = event_name
        super().__init__("UNSUPPORTED_EVENT", f"Unsupported event: {event_name}")
