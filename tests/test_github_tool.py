"""Tests for the GitHub API wrapper.

Only the PyGithub client is mocked.
"""

from unittest.mock import MagicMock, PropertyMock

import pytest
from github import GithubException

from integration_gate.tools import GitHubTool
from integration_gate.utils import STATUS_MARKER as MARKER


def make_tool():
    client = MagicMock()
    repo = client.get_repo.return_value
    return GitHubTool("acme/starters", client=client), repo


def make_comment(comment_id: int, body: str, login: str, user_type: str = "User") -> MagicMock:
    comment = MagicMock(id=comment_id, body=body)
    comment.user.login = login
    comment.user.type = user_type
    return comment


class TestGitHubTool:
    """Tests for the calls the gate relies on."""

    def test_requires_token(self, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        with pytest.raises(ValueError):
            GitHubTool("acme/starters")

    def test_changed_files_include_rename_source(self):
        # Given
        tool, repo = make_tool()
        moved = MagicMock(filename="kit-b/map.ts", previous_filename="kit-a/map.ts")
        edited = MagicMock(filename="package.json", previous_filename=None)
        repo.get_pull.return_value.get_files.return_value = [moved, edited]

        # When
        paths = tool.get_changed_files(3)

        # Then
        assert paths == ["kit-b/map.ts", "kit-a/map.ts", "package.json"]

    def test_is_ancestor_uses_compare(self):
        # Given
        tool, repo = make_tool()
        repo.compare.return_value.status = "diverged"

        # When / Then
        assert tool.is_ancestor("a", "a")
        assert not tool.is_ancestor("a", "b")
        repo.compare.return_value.status = "ahead"
        assert tool.is_ancestor("a", "b")

    def test_update_branch_is_never_forced(self):
        # Given
        tool, repo = make_tool()

        # When
        tool.update_branch("main", "c3")

        # Then
        repo.get_git_ref.assert_called_once_with("heads/main")
        repo.get_git_ref.return_value.edit.assert_called_once_with(sha="c3", force=False)

    def test_find_comment_by_marker(self):
        # Given
        tool, repo = make_tool()
        tool.gh.get_user.return_value.login = "gate-bot"
        repo.get_issue.return_value.get_comments.return_value = [
            make_comment(1, "looks good", "alice"),
            make_comment(2, f"{MARKER}\n## Integration Gate", "gate-bot"),
        ]

        # When / Then
        assert tool.find_comment(7, MARKER) == 2

    def test_find_comment_ignores_other_authors(self):
        """Given a human comment quoting the status message, it is never picked."""
        # Given
        tool, repo = make_tool()
        tool.gh.get_user.return_value.login = "gate-bot"
        repo.get_issue.return_value.get_comments.return_value = [
            make_comment(1, f"{MARKER}\n## Integration Gate: FAILED (copied)", "alice"),
            make_comment(2, f"> {MARKER}\nwhy did this fail?", "bob"),
            make_comment(3, f"{MARKER}\n## Integration Gate: FAILED", "gate-bot"),
        ]

        # When / Then
        assert tool.find_comment(7, MARKER) == 3

    def test_find_comment_falls_back_to_bot_authors(self):
        """Given a token that cannot read /user, only bot comments match."""
        # Given
        tool, repo = make_tool()
        type(tool.gh.get_user.return_value).login = PropertyMock(
            side_effect=GithubException(403, {"message": "Resource not accessible by integration"}, None)
        )
        repo.get_issue.return_value.get_comments.return_value = [
            make_comment(1, f"{MARKER}\nquoted", "alice"),
            make_comment(2, f"{MARKER}\n## Integration Gate", "github-actions[bot]", user_type="Bot"),
        ]

        # When / Then
        assert tool.find_comment(7, MARKER) == 2

    def test_find_comment_none_when_only_humans_quote(self):
        # Given
        tool, repo = make_tool()
        tool.gh.get_user.return_value.login = "gate-bot"
        repo.get_issue.return_value.get_comments.return_value = [
            make_comment(1, f"{MARKER}\nquoted", "alice"),
        ]

        # When / Then
        assert tool.find_comment(7, MARKER) is None

    def test_commit_status_context(self):
        # Given
        tool, repo = make_tool()

        # When
        tool.create_commit_status("c3", "success", "x" * 200)

        # Then
        kwargs = repo.get_commit.return_value.create_status.call_args.kwargs
        assert kwargs["context"] == "integration-gate"
        assert len(kwargs["description"]) == 140

    def test_unknown_collaborator_has_no_permission(self):
        # Given
        tool, repo = make_tool()
        repo.get_collaborator_permission.side_effect = GithubException(404, {"message": "Not Found"}, None)

        # When / Then
        assert tool.collaborator_permission("stranger") == "none"

    def test_open_change_requests_containing(self):
        # Given
        tool, repo = make_tool()
        prs = [MagicMock(number=9), MagicMock(number=4)]
        prs[0].head.sha = "p9"
        prs[1].head.sha = "p4"
        repo.get_pulls.return_value = prs
        repo.compare.return_value.status = "ahead"

        # When
        numbers = tool.open_change_requests_containing("bad", base="dmz")

        # Then
        assert numbers == [4, 9]
        repo.get_pulls.assert_called_once_with(state="open", base="dmz")
