"""Trigger events from the CI platform."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from .errors import UnsupportedEvent

ZERO_SHA = "0" * 40


@dataclass
class ChangeRequestEvent:
    """A change request was opened, reopened or updated."""
    number: int
    source_ref: str
    target_ref: str
    head_sha: str
    action: str = "opened"


@dataclass
class PushEvent:
    """Commits were pushed to a branch."""
    branch: str
    before_sha: str
    head_sha: str
    commits: List[str] = field(default_factory=list)
    changed_paths: List[str] = field(default_factory=list)

    @property
    def is_new_branch(self) -> bool:
        return self.before_sha == ZERO_SHA


@dataclass
class DispatchEvent:
    """A manual revert request."""
    reason: str
    commit: Optional[str] = None
    actor: str = ""


TriggerEvent = Union[ChangeRequestEvent, PushEvent, DispatchEvent]

CHANGE_REQUEST_ACTIONS = ("opened", "reopened", "synchronize", "ready_for_review")


def _push_event(payload: dict) -> PushEvent:
    ref = payload.get("ref", "")
    if not ref.startswith("refs/heads/"):
        raise UnsupportedEvent(f"push to {ref or 'unknown ref'}")

    commits = payload.get("commits") or []
    paths: List[str] = []
    for commit in commits:
        for key in ("added", "modified", "removed"):
            for path in commit.get(key) or []:
                if path not in paths:
                    paths.append(path)

    return PushEvent(
        branch=ref[len("refs/heads/"):],
        before_sha=payload.get("before", ZERO_SHA),
        head_sha=payload["after"],
        commits=[c["id"] for c in commits if "id" in c],
        changed_paths=paths,
    )


def parse_event(event_name: str, payload: dict) -> TriggerEvent:
    """
    Turn a CI event payload into a trigger event.

    Args:
        event_name: GitHub Actions event name
        payload: Event payload (contents of GITHUB_EVENT_PATH)

    Raises:
        UnsupportedEvent: For events the gate does not handle
    """
    if event_name in ("pull_request", "pull_request_target"):
        action = payload.get("action", "")
        if action not in CHANGE_REQUEST_ACTIONS:
            raise UnsupportedEvent(f"{event_name}.{action}")
        pr = payload["pull_request"]
        return ChangeRequestEvent(
            number=int(pr["number"]),
            source_ref=pr["head"]["ref"],
            target_ref=pr["base"]["ref"],
            head_sha=pr["head"]["sha"],
            action=action,
        )

    if event_name == "push":
        return _push_event(payload)

    if event_name == "workflow_dispatch":
        inputs = payload.get("inputs") or {}
        reason = (inputs.get("reason") or "").strip()
        if not reason:
            raise UnsupportedEvent("workflow_dispatch without a reason")
        return DispatchEvent(
            reason=reason,
            commit=(inputs.get("commit") or "").strip() or None,
            actor=(payload.get("sender") or {}).get("login", ""),
        )

    raise UnsupportedEvent(event_name)


def load_event_from_env() -> TriggerEvent:
    """Read the current event from GITHUB_EVENT_NAME / GITHUB_EVENT_PATH."""
    event_name = os.environ.get("GITHUB_EVENT_NAME", "")
    event_path = os.environ.get("GITHUB_EVENT_PATH", "")
    if not event_name or not event_path:
        raise UnsupportedEvent(event_name or "<missing GITHUB_EVENT_NAME>")

    payload = json.loads(Path(event_path).read_text())
    return parse_event(event_name, payload)
