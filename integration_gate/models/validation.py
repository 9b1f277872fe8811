"""Data models for check pipelines and validation runs."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple
from datetime import datetime


class CheckName(Enum):
    """Checks run for every affected unit, in pipeline order."""
    LINT = "lint"
    FORMAT = "format"
    TYPE_CHECK = "type-check"
    BUILD = "build"
    TEST = "test"

    @classmethod
    def pipeline(cls) -> List["CheckName"]:
        """Fixed execution order: lint -> format -> type-check -> build -> test."""
        return [cls.LINT, cls.FORMAT, cls.TYPE_CHECK, cls.BUILD, cls.TEST]


class CheckOutcome(Enum):
    """Outcome of a single check."""
    PASSED = "passed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"  # Counts as a failure
    SKIPPED = "skipped"      # Not executed after an earlier blocking failure


@dataclass(frozen=True)
class CheckResult:
    """Result of one opaque check invocation."""
    check: CheckName
    outcome: CheckOutcome
    diagnostics: str = ""
    duration_seconds: float = 0.0
    blocking: bool = True

    @property
    def passed(self) -> bool:
        return self.outcome == CheckOutcome.PASSED


@dataclass(frozen=True)
class ValidationRun:
    """
    One execution of the check pipeline for a (source, unit) pair.

    Immutable once recorded. A later run for the same source and unit
    supersedes it rather than mutating it.
    """
    source_ref: str
    head_sha: str
    unit: str
    results: Tuple[CheckResult, ...] = ()
    timestamp: datetime = field(default_factory=datetime.now)
    trigger_id: int = 0

    @property
    def passed(self) -> bool:
        """Unit passes only if every check in the pipeline passed."""
        return bool(self.results) and all(r.passed for r in self.results)

    @property
    def failed_checks(self) -> List[CheckResult]:
        return [r for r in self.results if r.outcome in (CheckOutcome.FAILED, CheckOutcome.TIMED_OUT)]

    @property
    def key(self) -> Tuple[str, str, datetime]:
        return (self.source_ref, self.unit, self.timestamp)

    def to_dict(self) -> dict:
        return {
            "source_ref": self.source_ref,
            "head_sha": self.head_sha,
            "unit": self.unit,
            "passed": self.passed,
            "timestamp": self.timestamp.isoformat(),
            "checks": [
                {
                    "check": r.check.value,
                    "outcome": r.outcome.value,
                    "duration_seconds": round(r.duration_seconds, 3),
                }
                for r in self.results
            ],
        }
