"""Integration gate components.

This module provides:
- ChangeDetector: Maps changed paths to affected units
- ValidationRunner: Runs the lint/format/type-check/build/test pipeline
- ValidationLedger: Append-only run records with supersession
- GateController: State machine deciding merge and fast-forward
- FastForwarder: Guarded stable-branch update
- RevertController: Authorized revert with tracking issue
- Notifier: Best-effort status reporting
"""

from .detector import ChangeDetector
from .runner import CheckInvoker, SubprocessCheckInvoker, ValidationRunner
from .ledger import ValidationLedger
from .locks import BranchLocks
from .fast_forward import BranchStore, FastForwarder
from .notifier import Notifier
from .authorization import (
    REVERT_ACTION,
    Authorizer,
    AllowListAuthorizer,
    DenyAllAuthorizer,
    RepositoryPermissionAuthorizer,
    build_authorizer,
)
from .controller import GateController
from .revert import RevertController

__all__ = [
    "ChangeDetector",
    "CheckInvoker",
    "SubprocessCheckInvoker",
    "ValidationRunner",
    "ValidationLedger",
    "BranchLocks",
    "BranchStore",
    "FastForwarder",
    "Notifier",
    "REVERT_ACTION",
    "Authorizer",
    "AllowListAuthorizer",
    "DenyAllAuthorizer",
    "RepositoryPermissionAuthorizer",
    "build_authorizer",
    "GateController",
    "RevertController",
]
