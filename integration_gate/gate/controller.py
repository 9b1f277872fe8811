"""Gate controller: the validation state machine."""

from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..config import UnitConfig
from ..errors import FastForwardConflict, InvalidTransition
from ..models import (
    ALLOWED_TRANSITIONS,
    ChangeRequest,
    FastForwardResult,
    FlowKind,
    GateDecision,
    GateOutcome,
    GateState,
    ValidationRun,
    ValidationStatus,
)
from ..utils import get_logger
from .detector import ChangeDetector
from .fast_forward import FastForwarder
from .ledger import ValidationLedger
from .notifier import Notifier
from .runner import ValidationRunner


class GateController:
    """
    Decides whether changes may proceed toward the stable branch.

    Flows:
    - Change request: validate affected units, report, unblock a human merge
    - Integration push: validate, then fast-forward the stable branch

    State is tracked per (source, head commit). A new head starts at PENDING.
    """

    def __init__(
        self,
        unit_config: UnitConfig,
        runner: ValidationRunner,
        notifier: Optional[Notifier] = None,
        fast_forwarder: Optional[FastForwarder] = None,
        ledger: Optional[ValidationLedger] = None,
        integration_branch: str = "dmz",
        publish_commit_status: bool = True,
    ):
        """
        Initialize gate controller.

        Args:
            unit_config: Units and global patterns
            runner: Validation runner for affected units
            notifier: Status reporting (None disables reporting)
            fast_forwarder: Stable-branch updater for the integration flow
            ledger: Shared validation ledger
            integration_branch: Branch change requests must target
            publish_commit_status: Also set a commit status on each head
        """
        self.unit_config = unit_config
        self.detector = ChangeDetector(unit_config.units, unit_config.global_patterns)
        self.runner = runner
        self.notifier = notifier
        self.fast_forwarder = fast_forwarder
        self.ledger = ledger or ValidationLedger()
        self.integration_branch = integration_branch
        self.publish_commit_status = publish_commit_status
        self.logger = get_logger()

        self._states: Dict[Tuple[str, str], GateState] = {}

    # State machine

    def state_of(self, source_key: str, head_sha: str) -> GateState:
        """Current state for a head commit (PENDING if never seen)."""
        return self._states.get((source_key, head_sha), GateState.PENDING)

    def _transition(self, source_key: str, head_sha: str, target: GateState) -> None:
        current = self.state_of(source_key, head_sha)
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransition(current.value, target.value)
        self._states[(source_key, head_sha)] = target
        self.logger.debug(f"{source_key}@{head_sha[:12]}: {current.value} -> {target.value}")

    @staticmethod
    def decide(runs: Iterable[ValidationRun], affected: Set[str]) -> GateDecision:
        """
        Gate verdict for a head commit.

        ALLOW iff every affected unit's latest run passed. An empty affected
        set is trivially allowed.
        """
        latest: Dict[str, ValidationRun] = {}
        for run in runs:
            current = latest.get(run.unit)
            if current is None or (run.trigger_id, run.timestamp) >= (current.trigger_id, current.timestamp):
                latest[run.unit] = run

        for unit in affected:
            run = latest.get(unit)
            if run is None or not run.passed:
                return GateDecision.BLOCK
        return GateDecision.ALLOW

    # Validation

    async def _validate(
        self,
        flow: FlowKind,
        source_key: str,
        source_ref: str,
        head_sha: str,
        changed_paths: List[str],
    ) -> GateOutcome:
        affected = self.detector.affected_units(changed_paths)

        # A second trigger for a head already in flight supersedes the first
        if self.state_of(source_key, head_sha) != GateState.VALIDATING:
            self._transition(source_key, head_sha, GateState.VALIDATING)
        trigger_id = self.ledger.begin(source_key)

        if affected:
            self.logger.info(f"Validating {source_ref}@{head_sha[:12]}: {', '.join(sorted(affected))}")
        else:
            self.logger.info(f"No units affected by {source_ref}@{head_sha[:12]}")

        units = [self.unit_config.get_unit(name) for name in sorted(affected)]
        runs = await self.runner.run_units(units, source_ref, head_sha, trigger_id)

        if not await self.ledger.record(source_key, trigger_id, runs):
            return GateOutcome(
                flow=flow,
                source_ref=source_ref,
                head_sha=head_sha,
                state=GateState.VALIDATING,
                decision=GateDecision.BLOCK,
                affected_units=affected,
                runs=runs,
                superseded=True,
            )

        decision = self.decide(runs, affected)
        state = GateState.PASSED if decision == GateDecision.ALLOW else GateState.FAILED
        self._transition(source_key, head_sha, state)

        return GateOutcome(
            flow=flow,
            source_ref=source_ref,
            head_sha=head_sha,
            state=state,
            decision=decision,
            affected_units=affected,
            runs=runs,
        )

    def _report(self, outcome: GateOutcome, cr: Optional[ChangeRequest] = None) -> None:
        """Send status out. Never raises."""
        if self.notifier is None:
            return
        try:
            if cr is not None:
                outcome.message_id = self.notifier.post_status(cr, outcome)
            if self.publish_commit_status:
                self.notifier.publish_commit_status(outcome.head_sha, outcome)
        except Exception:
            self.logger.exception(f"Reporting failed for {outcome.source_ref}@{outcome.head_sha[:12]}")

    async def submit_change_request(self, cr: ChangeRequest) -> GateOutcome:
        """
        Validate a change request (opened or updated).

        Never fast-forwards: a PASSED change request only unblocks a human merge.

        Returns:
            GateOutcome for the change request head
        """
        if cr.target_branch != self.integration_branch:
            cr.validation_status = ValidationStatus.FAILED
            outcome = GateOutcome(
                flow=FlowKind.CHANGE_REQUEST,
                source_ref=cr.source_ref,
                head_sha=cr.head_sha,
                state=self._fail_wrong_target(cr),
                decision=GateDecision.BLOCK,
                error=f"Change requests must target {self.integration_branch}, not {cr.target_branch}",
            )
            self.logger.error(outcome.error)
            self._report(outcome, cr)
            return outcome

        current = self.state_of(cr.source_key, cr.head_sha)
        if current in (GateState.PASSED, GateState.MERGED):
            self.logger.info(f"#{cr.number}@{cr.head_sha[:12]} already {current.value}")
            outcome = self._settled_outcome(FlowKind.CHANGE_REQUEST, cr.source_key, cr.source_ref, cr.head_sha)
            self._report(outcome, cr)
            return outcome

        outcome = await self._validate(
            FlowKind.CHANGE_REQUEST, cr.source_key, cr.source_ref, cr.head_sha, cr.changed_paths
        )
        cr.affected_units = set(outcome.affected_units)

        if outcome.superseded:
            self.logger.info(f"#{cr.number}@{cr.head_sha[:12]} superseded by a newer trigger")
            return outcome

        cr.validation_status = ValidationStatus.PASSED if outcome.allowed else ValidationStatus.FAILED
        self.logger.info(f"#{cr.number}: {outcome.state.value}")
        self._report(outcome, cr)
        return outcome

    def _fail_wrong_target(self, cr: ChangeRequest) -> GateState:
        """
        Record a change request aimed at the wrong branch as FAILED where allowed.

        A run in flight for the head is superseded. A head that already
        PASSED keeps its state; the returned outcome still blocks.
        """
        current = self.state_of(cr.source_key, cr.head_sha)
        if current == GateState.VALIDATING:
            self.ledger.begin(cr.source_key)
        elif GateState.VALIDATING in ALLOWED_TRANSITIONS[current]:
            self._transition(cr.source_key, cr.head_sha, GateState.VALIDATING)
        else:
            return current
        self._transition(cr.source_key, cr.head_sha, GateState.FAILED)
        return GateState.FAILED

    def mark_merged(self, cr: ChangeRequest) -> None:
        """Record the human merge of a PASSED change request."""
        self._transition(cr.source_key, cr.head_sha, GateState.MERGED)
        cr.close()

    async def handle_integration_push(
        self,
        branch: str,
        head_sha: str,
        changed_paths: List[str],
    ) -> GateOutcome:
        """
        Validate an integration-branch push and fast-forward the stable branch.

        A fast-forward conflict is reported in the outcome and left for
        manual resolution; the head stays PASSED.

        Raises:
            ValueError: If the branch is not the integration branch
        """
        if branch != self.integration_branch:
            raise ValueError(f"Push to {branch} is not an integration-branch push")

        source_key = f"branch/{branch}"
        current = self.state_of(source_key, head_sha)

        if current in (GateState.PASSED, GateState.FAST_FORWARDED):
            outcome = self._settled_outcome(FlowKind.INTEGRATION_PUSH, source_key, branch, head_sha)
            if current == GateState.FAST_FORWARDED:
                return outcome
        else:
            outcome = await self._validate(FlowKind.INTEGRATION_PUSH, source_key, branch, head_sha, changed_paths)

        if outcome.state == GateState.PASSED and not outcome.superseded:
            await self._fast_forward(source_key, outcome)

        self.logger.info(f"{branch}@{head_sha[:12]}: {outcome.state.value}")
        if not outcome.superseded:
            self._report(outcome)
        return outcome

    async def _fast_forward(self, source_key: str, outcome: GateOutcome) -> None:
        if self.fast_forwarder is None:
            self.logger.warning("No fast-forwarder configured; stable branch left unchanged")
            return

        try:
            result = await self.fast_forwarder.fast_forward(outcome.head_sha)
        except FastForwardConflict as e:
            self.logger.error(str(e))
            outcome.error = str(e)
            outcome.fast_forward = FastForwardResult(
                branch=e.branch,
                previous_sha=e.stable_sha,
                new_sha=None,
                success=False,
                error=e.message,
            )
            return

        self._transition(source_key, outcome.head_sha, GateState.FAST_FORWARDED)
        outcome.state = GateState.FAST_FORWARDED
        outcome.fast_forward = result

    def _settled_outcome(self, flow: FlowKind, source_key: str, source_ref: str, head_sha: str) -> GateOutcome:
        """Outcome for a head that already has a recorded verdict."""
        latest = self.ledger.latest(source_key, head_sha)
        state = self.state_of(source_key, head_sha)
        return GateOutcome(
            flow=flow,
            source_ref=source_ref,
            head_sha=head_sha,
            state=state,
            decision=self.decide(latest.values(), set(latest)),
            affected_units=set(latest),
            runs=list(latest.values()),
        )
