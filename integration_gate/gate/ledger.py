"""Append-only record of validation runs."""

import asyncio
from collections import defaultdict
from typing import Dict, List, Optional

from ..models import ValidationRun
from ..utils import get_logger


class ValidationLedger:
    """
    Append-only store of ValidationRuns with last-trigger-wins supersession.

    Every trigger for a source (a change request or a branch) calls begin()
    and gets a trigger id. Runs are only recorded while their trigger id is
    still the newest one for that source; an older trigger that finishes
    late is discarded.
    """

    def __init__(self):
        self._lock = asyncio.Lock()
        self._runs: Dict[str, List[ValidationRun]] = defaultdict(list)
        self._latest_trigger: Dict[str, int] = {}
        self._counter = 0
        self.logger = get_logger()

    def begin(self, source_key: str) -> int:
        """Register a new trigger for a source and return its id."""
        self._counter += 1
        self._latest_trigger[source_key] = self._counter
        return self._counter

    def is_current(self, source_key: str, trigger_id: int) -> bool:
        return self._latest_trigger.get(source_key) == trigger_id

    async def record(self, source_key: str, trigger_id: int, runs: List[ValidationRun]) -> bool:
        """
        Append runs for a trigger.

        Returns:
            False if a newer trigger superseded this one (runs are dropped)
        """
        async with self._lock:
            if not self.is_current(source_key, trigger_id):
                self.logger.info(
                    f"Discarding {len(runs)} run(s) for {source_key}: trigger {trigger_id} "
                    f"superseded by {self._latest_trigger.get(source_key)}"
                )
                return False

            recorded = self._runs[source_key]
            existing = {run.key for run in recorded}
            for run in runs:
                if run.key not in existing:
                    recorded.append(run)
                    existing.add(run.key)
            return True

    def runs_for(self, source_key: str, head_sha: Optional[str] = None) -> List[ValidationRun]:
        """All recorded runs for a source, oldest first."""
        return [
            run for run in self._runs.get(source_key, [])
            if head_sha is None or run.head_sha == head_sha
        ]

    def latest(self, source_key: str, head_sha: Optional[str] = None) -> Dict[str, ValidationRun]:
        """Most recent run per unit for a source."""
        latest: Dict[str, ValidationRun] = {}
        for run in self.runs_for(source_key, head_sha):
            current = latest.get(run.unit)
            if current is None or (run.trigger_id, run.timestamp) >= (current.trigger_id, current.timestamp):
                latest[run.unit] = run
        return latest

    def __len__(self) -> int:
        return sum(len(runs) for runs in self._runs.values())
