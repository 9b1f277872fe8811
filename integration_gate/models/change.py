"""Data models for change requests and units."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set
from datetime import datetime


def normalize_path(path: str) -> str:
    """Repo-relative path without a leading "./" or a trailing "/"."""
    path = path.strip().replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path.rstrip("/")


class ValidationStatus(Enum):
    """Validation status of a change request."""
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"


@dataclass
class Unit:
    """An independently validated project subtree (a "starter")."""
    name: str
    paths: List[str] = field(default_factory=list)  # Path prefixes used for change detection
    enabled: bool = True

    def __post_init__(self):
        if not self.paths:
            self.paths = [self.name]
        self.paths = [normalize_path(p) for p in self.paths]

    def owns(self, path: str) -> bool:
        """Check if a repo-relative path sits under one of this unit's prefixes."""
        for prefix in self.paths:
            if not prefix:
                continue
            if path == prefix or path.startswith(prefix + "/"):
                return True
        return False


@dataclass
class ChangeRequest:
    """A proposed change set targeting the integration branch."""
    number: int
    source_ref: str
    target_branch: str
    head_sha: str
    title: str = ""
    changed_paths: List[str] = field(default_factory=list)
    affected_units: Set[str] = field(default_factory=set)
    validation_status: ValidationStatus = ValidationStatus.PENDING
    status_message_id: Optional[int] = None  # Comment id reused for update-in-place
    closed: bool = False
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def source_key(self) -> str:
        """Key under which validation runs for this change request are grouped."""
        return f"cr/{self.number}"

    def close(self) -> None:
        """Mark the change request as merged or abandoned."""
        self.closed = True
        self.updated_at = datetime.now()
