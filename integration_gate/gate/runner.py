"""Validation runner: the per-unit check pipeline."""

import asyncio
import time
from pathlib import Path
from typing import Dict, List, Optional, Protocol

from ..errors import CheckTimeout
from ..models import CheckName, CheckOutcome, CheckResult, Unit, ValidationRun
from ..utils import get_logger


class CheckInvoker(Protocol):
    """Runs one opaque check for a unit and reports pass/fail."""

    async def invoke(self, unit: Unit, check: CheckName, source_ref: str) -> CheckResult:
        ...


class SubprocessCheckInvoker:
    """
    Runs checks as commands inside the unit's directory.

    A check passes when its command exits 0. Output (stdout + stderr) is
    kept as diagnostics.
    """

    def __init__(
        self,
        commands: Dict[CheckName, List[str]],
        work_dir: Optional[Path] = None,
        timeout: float = 900.0,
    ):
        self.commands = commands
        self.work_dir = Path(work_dir) if work_dir else Path.cwd()
        self.timeout = timeout
        self.logger = get_logger("runner")

    def unit_dir(self, unit: Unit) -> Path:
        candidate = self.work_dir / unit.paths[0]
        return candidate if candidate.is_dir() else self.work_dir

    async def invoke(self, unit: Unit, check: CheckName, source_ref: str) -> CheckResult:
        cmd = self.commands.get(check)
        if not cmd:
            return CheckResult(check=check, outcome=CheckOutcome.FAILED,
                               diagnostics=f"No command configured for {check.value}")

        cwd = self.unit_dir(unit)
        self.logger.debug(f"[{unit.name}] {check.value}: {' '.join(cmd)} (cwd={cwd})")
        started = time.monotonic()

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                cwd=str(cwd),
            )
        except OSError as e:
            return CheckResult(
                check=check,
                outcome=CheckOutcome.FAILED,
                diagnostics=f"Failed to start {cmd[0]}: {e}",
                duration_seconds=time.monotonic() - started,
            )

        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            timeout = CheckTimeout(unit.name, check.value, self.timeout)
            self.logger.warning(str(timeout))
            return CheckResult(
                check=check,
                outcome=CheckOutcome.TIMED_OUT,
                diagnostics=timeout.message,
                duration_seconds=time.monotonic() - started,
            )

        output = stdout.decode(errors="replace") if stdout else ""
        return CheckResult(
            check=check,
            outcome=CheckOutcome.PASSED if proc.returncode == 0 else CheckOutcome.FAILED,
            diagnostics=output,
            duration_seconds=time.monotonic() - started,
        )


class ValidationRunner:
    """
    Runs the fixed check pipeline for affected units.

    Handles:
    - Ordered execution: lint -> format -> type-check -> build -> test
    - Early exit on the first blocking failure (later checks are skipped)
    - Parallel validation of independent units
    """

    def __init__(self, invoker: CheckInvoker, max_parallel: int = 4):
        self.invoker = invoker
        self.max_parallel = max(1, max_parallel)
        self.logger = get_logger("runner")

    async def run_unit(
        self,
        unit: Unit,
        source_ref: str,
        head_sha: str,
        trigger_id: int = 0,
    ) -> ValidationRun:
        """
        Run every check for a single unit.

        Args:
            unit: Unit to validate
            source_ref: Branch or change request ref being validated
            head_sha: Commit the working tree is at
            trigger_id: Ledger trigger this run belongs to

        Returns:
            ValidationRun with one result per pipeline check
        """
        results: List[CheckResult] = []
        blocked_by: Optional[CheckResult] = None

        for check in CheckName.pipeline():
            if blocked_by is not None:
                results.append(CheckResult(
                    check=check,
                    outcome=CheckOutcome.SKIPPED,
                    diagnostics=f"Skipped: {blocked_by.check.value} failed",
                ))
                continue

            try:
                result = await self.invoker.invoke(unit, check, source_ref)
            except Exception as e:
                self.logger.exception(f"[{unit.name}] {check.value} crashed")
                result = CheckResult(check=check, outcome=CheckOutcome.FAILED,
                                     diagnostics=f"Check crashed: {e}")
            results.append(result)

            if result.passed:
                self.logger.info(f"[{unit.name}] {check.value} passed")
            else:
                self.logger.warning(f"[{unit.name}] {check.value} {result.outcome.value}")
                if result.blocking:
                    blocked_by = result

        return ValidationRun(
            source_ref=source_ref,
            head_sha=head_sha,
            unit=unit.name,
            results=tuple(results),
            trigger_id=trigger_id,
        )

    async def run_units(
        self,
        units: List[Unit],
        source_ref: str,
        head_sha: str,
        trigger_id: int = 0,
    ) -> List[ValidationRun]:
        """
        Validate several units in parallel.

        Returns:
            One ValidationRun per unit, in the order given
        """
        semaphore = asyncio.Semaphore(self.max_parallel)

        async def limited_run(unit: Unit) -> ValidationRun:
            async with semaphore:
                return await self.run_unit(unit, source_ref, head_sha, trigger_id)

        return list(await asyncio.gather(*(limited_run(u) for u in units)))
