"""Data models for the integration gate."""

from .change import normalize_path, ValidationStatus, Unit, ChangeRequest
from .validation import CheckName, CheckOutcome, CheckResult, ValidationRun
from .gate import (
    GateState,
    ALLOWED_TRANSITIONS,
    GateDecision,
    FlowKind,
    FastForwardResult,
    GateOutcome,
    RevertRecord,
)

__all__ = [
    "normalize_path",
    "ValidationStatus",
    "Unit",
    "ChangeRequest",
    "CheckName",
    "CheckOutcome",
    "CheckResult",
    "ValidationRun",
    "GateState",
    "ALLOWED_TRANSITIONS",
    "GateDecision",
    "FlowKind",
    "FastForwardResult",
    "GateOutcome",
    "RevertRecord",
]
