"""GitHub API wrapper for gate operations."""

import os
from typing import List, Optional

from github import Auth, Github, GithubException
from github.Repository import Repository as GHRepository

from ..models import ChangeRequest


class GitHubTool:
    """
    GitHub API wrapper for the integration gate.

    Handles:
    - Loading change requests and their changed files
    - Status comments (find, create, edit in place)
    - Tracking issues and commit statuses
    - Branch heads, ancestry checks and non-forced ref updates
    """

    STATUS_CONTEXT = "integration-gate"

    def __init__(self, repo: str, token: Optional[str] = None, client: Optional[Github] = None):
        """
        Initialize GitHub tool.

        Args:
            repo: Repository in format "owner/repo"
            token: GitHub token (defaults to GITHUB_TOKEN env var)
            client: Pre-built client (tests, GitHub Enterprise)
        """
        if client is None:
            self.token = token or os.environ.get("GITHUB_TOKEN")
            if not self.token:
                raise ValueError("GitHub token required. Set GITHUB_TOKEN env var or pass token parameter.")
            client = Github(auth=Auth.Token(self.token))

        self.gh = client
        self.repo: GHRepository = self.gh.get_repo(repo)
        self._login: Optional[str] = None

    # Change requests

    def get_change_request(self, number: int) -> ChangeRequest:
        """Load a pull request as a ChangeRequest."""
        pr = self.repo.get_pull(number)
        return ChangeRequest(
            number=pr.number,
            source_ref=pr.head.ref,
            target_branch=pr.base.ref,
            head_sha=pr.head.sha,
            title=pr.title,
            changed_paths=self.get_changed_files(number),
            closed=pr.state != "open",
            created_at=pr.created_at,
            updated_at=pr.updated_at,
        )

    def get_changed_files(self, number: int) -> List[str]:
        """
        Get files changed by a pull request.

        Renamed files contribute both their old and new path.
        """
        paths = []
        for f in self.repo.get_pull(number).get_files():
            paths.append(f.filename)
            if f.previous_filename:
                paths.append(f.previous_filename)
        return paths

    def open_change_requests_containing(self, sha: str, base: Optional[str] = None) -> List[int]:
        """Numbers of open pull requests whose history includes a commit."""
        kwargs = {"state": "open"}
        if base:
            kwargs["base"] = base

        numbers = []
        for pr in self.repo.get_pulls(**kwargs):
            if self.is_ancestor(sha, pr.head.sha):
                numbers.append(pr.number)
        return sorted(numbers)

    # Comments and issues

    def _author_login(self) -> Optional[str]:
        """Login the client authenticates as, or None when the token cannot read it."""
        if self._login is None:
            try:
                self._login = self.gh.get_user().login
            except GithubException:
                # Actions installation tokens cannot read /user
                self._login = ""
        return self._login or None

    def find_comment(self, number: int, marker: str) -> Optional[int]:
        """
        Id of the first comment that starts with a marker and was written by the gate.

        Comments by other users (e.g. someone quoting the status message) are
        ignored. Without a readable login, only bot-authored comments match.
        """
        login = self._author_login()
        for comment in self.repo.get_issue(number).get_comments():
            if not (comment.body or "").startswith(marker):
                continue
            if login is not None and comment.user.login != login:
                continue
            if login is None and comment.user.type != "Bot":
                continue
            return comment.id
        return None

    def create_comment(self, number: int, body: str) -> int:
        return self.repo.get_issue(number).create_comment(body).id

    def edit_comment(self, number: int, comment_id: int, body: str) -> int:
        comment = self.repo.get_issue(number).get_comment(comment_id)
        comment.edit(body)
        return comment.id

    def create_issue(self, title: str, body: str, labels: Optional[List[str]] = None) -> int:
        issue = self.repo.create_issue(title=title, body=body, labels=labels or [])
        return issue.number

    def create_commit_status(self, sha: str, state: str, description: str, target_url: Optional[str] = None):
        """Set the integration-gate status on a commit (success, failure, pending, error)."""
        kwargs = {
            "state": state,
            "description": description[:140],
            "context": self.STATUS_CONTEXT,
        }
        if target_url:
            kwargs["target_url"] = target_url
        self.repo.get_commit(sha).create_status(**kwargs)

    # Branches

    def head(self, branch: str) -> str:
        """Current head sha of a branch."""
        return self.repo.get_branch(branch).commit.sha

    def is_ancestor(self, ancestor: str, descendant: str) -> bool:
        """Check if `ancestor` is reachable from `descendant`."""
        if ancestor == descendant:
            return True
        comparison = self.repo.compare(ancestor, descendant)
        return comparison.status in ("ahead", "identical")

    def changed_paths(self, base: str, head: str) -> List[str]:
        """Paths that differ between two commits."""
        paths = []
        for f in self.repo.compare(base, head).files:
            paths.append(f.filename)
            if f.previous_filename:
                paths.append(f.previous_filename)
        return paths

    def update_branch(self, branch: str, sha: str) -> None:
        """
        Move a branch to a new commit.

        Never forced: GitHub rejects the update if it is not a fast-forward.
        """
        ref = self.repo.get_git_ref(f"heads/{branch}")
        ref.edit(sha=sha, force=False)

    def collaborator_permission(self, actor: str) -> str:
        """Permission level of a user: admin, maintain, write, triage, read or none."""
        try:
            return self.repo.get_collaborator_permission(actor)
        except GithubException as e:
            if e.status == 404:
                return "none"
            raise
