"""Data models for gate decisions, fast-forwards and reverts."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Set, Tuple
from datetime import datetime

from .validation import ValidationRun


class GateState(Enum):
    """State of a validated head commit."""
    PENDING = "pending"                  # Trigger received, nothing run yet
    VALIDATING = "validating"            # Checks in flight
    PASSED = "passed"                    # All affected units passed
    FAILED = "failed"                    # At least one affected unit failed
    MERGED = "merged"                    # Change request merged by a human
    FAST_FORWARDED = "fast_forwarded"    # Stable branch moved to this head


ALLOWED_TRANSITIONS: Dict[GateState, FrozenSet[GateState]] = {
    GateState.PENDING: frozenset({GateState.VALIDATING}),
    GateState.VALIDATING: frozenset({GateState.PASSED, GateState.FAILED}),
    GateState.FAILED: frozenset({GateState.VALIDATING}),
    GateState.PASSED: frozenset({GateState.MERGED, GateState.FAST_FORWARDED}),
    GateState.MERGED: frozenset(),
    GateState.FAST_FORWARDED: frozenset(),
}


class GateDecision(Enum):
    """Derived gate verdict for a head commit."""
    ALLOW = "allow"
    BLOCK = "block"


class FlowKind(Enum):
    """Which flow produced an outcome."""
    CHANGE_REQUEST = "change_request"
    INTEGRATION_PUSH = "integration_push"


@dataclass
class FastForwardResult:
    """Result of a stable-branch fast-forward attempt."""
    branch: str
    previous_sha: Optional[str]
    new_sha: Optional[str]
    success: bool
    already_up_to_date: bool = False
    error: Optional[str] = None


@dataclass
class GateOutcome:
    """Structured result handed back to the triggering event."""
    flow: FlowKind
    source_ref: str
    head_sha: str
    state: GateState
    decision: GateDecision
    affected_units: Set[str] = field(default_factory=set)
    runs: List[ValidationRun] = field(default_factory=list)
    fast_forward: Optional[FastForwardResult] = None
    error: Optional[str] = None
    superseded: bool = False
    message_id: Optional[int] = None

    @property
    def allowed(self) -> bool:
        return self.decision == GateDecision.ALLOW

    def to_dict(self) -> dict:
        data = {
            "flow": self.flow.value,
            "source_ref": self.source_ref,
            "head_sha": self.head_sha,
            "state": self.state.value,
            "decision": self.decision.value,
            "affected_units": sorted(self.affected_units),
            "runs": [run.to_dict() for run in self.runs],
            "superseded": self.superseded,
            "error": self.error,
            "message_id": self.message_id,
        }
        if self.fast_forward is not None:
            data["fast_forward"] = {
                "branch": self.fast_forward.branch,
                "previous_sha": self.fast_forward.previous_sha,
                "new_sha": self.fast_forward.new_sha,
                "success": self.fast_forward.success,
                "already_up_to_date": self.fast_forward.already_up_to_date,
                "error": self.fast_forward.error,
            }
        return data


@dataclass(frozen=True)
class RevertRecord:
    """A revert applied to the integration branch. Immutable once applied."""
    target_sha: str
    reason: str
    revert_sha: str
    branch: str
    actor: str = ""
    tracking_issue: Optional[int] = None
    notified_change_requests: Tuple[int, ...] = ()
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        return {
            "target_sha": self.target_sha,
            "reason": self.reason,
            "revert_sha": self.revert_sha,
            "branch": self.branch,
            "actor": self.actor,
            "tracking_issue": self.tracking_issue,
            "notified_change_requests": list(self.notified_change_requests),
            "created_at": self.created_at.isoformat(),
        }
