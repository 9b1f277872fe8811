"""Tests for revert authorization."""

import json

import pytest
from github import GithubException

from conftest import FakeGitHub

from integration_gate.errors import AuthorizationDenied, ConfigurationError
from integration_gate.gate import (
    REVERT_ACTION,
    AllowListAuthorizer,
    DenyAllAuthorizer,
    RepositoryPermissionAuthorizer,
    build_authorizer,
)


class TestAuthorizers:
    """Tests for each authorization policy."""

    def test_allow_list(self):
        # Given
        authorizer = AllowListAuthorizer({"revert": ["Alice"]})

        # When / Then
        authorizer.authorize("alice", REVERT_ACTION)
        with pytest.raises(AuthorizationDenied):
            authorizer.authorize("bob", REVERT_ACTION)
        with pytest.raises(AuthorizationDenied):
            authorizer.authorize("", REVERT_ACTION)

    def test_allow_list_from_file(self, tmp_path):
        # Given
        path = tmp_path / "revert-policy.json"
        path.write_text(json.dumps({"revert": ["release-bot"]}))

        # When
        authorizer = AllowListAuthorizer.from_file(path)

        # Then
        authorizer.authorize("release-bot", REVERT_ACTION)

    def test_malformed_policy_file(self, tmp_path):
        # Given
        path = tmp_path / "revert-policy.json"
        path.write_text(json.dumps({"revert": "alice"}))

        # When / Then
        with pytest.raises(ConfigurationError):
            AllowListAuthorizer.from_file(path)

    def test_repository_permission(self):
        # Given
        authorizer = RepositoryPermissionAuthorizer(FakeGitHub())

        # When / Then
        authorizer.authorize("admin-user", REVERT_ACTION)
        with pytest.raises(AuthorizationDenied, match="insufficient"):
            authorizer.authorize("writer", REVERT_ACTION)

    def test_permission_lookup_failure_denies(self):
        # Given
        github = FakeGitHub()
        github.fail_with = GithubException(500, {"message": "Server Error"}, None)
        authorizer = RepositoryPermissionAuthorizer(github)

        # When / Then
        with pytest.raises(AuthorizationDenied, match="lookup failed"):
            authorizer.authorize("admin-user", REVERT_ACTION)


class TestBuildAuthorizer:
    """Tests for policy selection."""

    def test_policy_file_wins(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text(json.dumps({"revert": ["alice"]}))
        assert isinstance(build_authorizer(str(path), FakeGitHub()), AllowListAuthorizer)

    def test_repository_permissions_without_file(self):
        assert isinstance(build_authorizer(None, FakeGitHub()), RepositoryPermissionAuthorizer)

    def test_deny_all_by_default(self):
        authorizer = build_authorizer(None, None)
        assert isinstance(authorizer, DenyAllAuthorizer)
        with pytest.raises(AuthorizationDenied):
            authorizer.authorize("alice", REVERT_ACTION)
