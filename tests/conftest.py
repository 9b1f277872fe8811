"""Shared fakes for the external collaborators: GitHub, git refs and check commands."""

import asyncio
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

import pytest
from github import GithubException

from integration_gate.config import UnitConfig, default_unit_config
from integration_gate.models import CheckName, CheckOutcome, CheckResult, Unit


class FakeInvoker:
    """Check invoker with scripted outcomes per (unit, check)."""

    def __init__(
        self,
        outcomes: Optional[Dict[Tuple[str, CheckName], CheckOutcome]] = None,
        delays: Optional[Dict[str, float]] = None,
    ):
        self.outcomes = outcomes or {}
        self.delays = delays or {}
        self.calls: List[Tuple[str, CheckName, str]] = []

    def fail(self, unit: str, check: CheckName, outcome: CheckOutcome = CheckOutcome.FAILED) -> "FakeInvoker":
        self.outcomes[(unit, check)] = outcome
        return self

    async def invoke(self, unit: Unit, check: CheckName, source_ref: str) -> CheckResult:
        self.calls.append((unit.name, check, source_ref))
        delay = self.delays.get(unit.name, 0)
        if delay:
            await asyncio.sleep(delay)
        outcome = self.outcomes.get((unit.name, check), CheckOutcome.PASSED)
        diagnostics = "" if outcome == CheckOutcome.PASSED else f"{check.value} failed for {unit.name}"
        return CheckResult(check=check, outcome=outcome, diagnostics=diagnostics)


class FakeBranchStore:
    """In-memory commit graph with GitHub-like non-forced ref updates."""

    def __init__(self):
        self.parents: Dict[str, List[str]] = {}
        self.heads: Dict[str, str] = {}
        self.updates: List[Tuple[str, str]] = []

    def commit(self, sha: str, *parents: str) -> str:
        self.parents[sha] = list(parents)
        return sha

    def head(self, branch: str) -> str:
        return self.heads[branch]

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        seen: Set[str] = set()
        stack = [descendant]
        while stack:
            sha = stack.pop()
            if sha == ancestor:
                return True
            if sha in seen:
                continue
            seen.add(sha)
            stack.extend(self.parents.get(sha, []))
        return False

    def update_branch(self, branch: str, sha: str) -> None:
        current = self.heads.get(branch)
        if current is not None and not self.is_ancestor(current, sha):
            raise GithubException(422, {"message": "Update is not a fast forward"}, None)
        self.heads[branch] = sha
        self.updates.append((branch, sha))

    def changed_paths(self, base: str, head: str) -> List[str]:
        return []


class FakeGitHub:
    """Records comment, issue and status calls made through GitHubTool's interface."""

    def __init__(self):
        self.comments: Dict[int, Dict[int, str]] = {}
        self.issues: List[Tuple[str, str, List[str]]] = []
        self.statuses: List[Tuple[str, str, str]] = []
        self.containing: Dict[str, List[int]] = {}
        self.fail_with: Optional[GithubException] = None
        self._next_id = 1000

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    def find_comment(self, number: int, marker: str) -> Optional[int]:
        self._maybe_fail()
        for comment_id, body in self.comments.get(number, {}).items():
            if marker in body:
                return comment_id
        return None

    def create_comment(self, number: int, body: str) -> int:
        self._maybe_fail()
        self._next_id += 1
        self.comments.setdefault(number, {})[self._next_id] = body
        return self._next_id

    def edit_comment(self, number: int, comment_id: int, body: str) -> int:
        self._maybe_fail()
        if comment_id not in self.comments.get(number, {}):
            raise GithubException(404, {"message": "Not Found"}, None)
        self.comments[number][comment_id] = body
        return comment_id

    def create_issue(self, title: str, body: str, labels: Optional[List[str]] = None) -> int:
        self._maybe_fail()
        self.issues.append((title, body, labels or []))
        return len(self.issues)

    def create_commit_status(self, sha: str, state: str, description: str, target_url=None):
        self._maybe_fail()
        self.statuses.append((sha, state, description))

    def open_change_requests_containing(self, sha: str, base: Optional[str] = None) -> List[int]:
        self._maybe_fail()
        return list(self.containing.get(sha, []))

    def collaborator_permission(self, actor: str) -> str:
        self._maybe_fail()
        return {"admin-user": "admin", "writer": "write"}.get(actor, "none")


@pytest.fixture
def unit_config() -> UnitConfig:
    return default_unit_config()


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def branch_store() -> FakeBranchStore:
    """main at c1, dmz at c3 (c1 <- c2 <- c3)."""
    store = FakeBranchStore()
    store.commit("c1")
    store.commit("c2", "c1")
    store.commit("c3", "c2")
    store.heads = {"main": "c1", "dmz": "c3"}
    return store


requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def git(repo: Path, *args: str) -> str:
    result = subprocess.run(["git", *args], cwd=str(repo), capture_output=True, text=True, check=True)
    return result.stdout.strip()


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A local repository with `main` and `dmz` and two starter units."""
    repo = tmp_path / "repo"
    repo.mkdir()
    git(repo, "init", "--quiet", "-b", "main")
    git(repo, "config", "user.name", "Gate Test")
    git(repo, "config", "user.email", "gate@example.com")
    git(repo, "config", "commit.gpgsign", "false")

    (repo / "kit-nextjs-skate-park").mkdir()
    (repo / "kit-nextjs-skate-park" / "app.tsx").write_text("export const board = 'v1';\n")
    (repo / "package.json").write_text('{"name": "starters"}\n')
    git(repo, "add", "-A")
    git(repo, "commit", "--quiet", "-m", "Initial commit")
    git(repo, "branch", "dmz")
    git(repo, "checkout", "--quiet", "dmz")
    return repo
