"""Authorization checks for privileged gate actions.

The policy that decides who may revert lives outside the automation
definitions: either a file deployed separately from the workflow files or
the repository's own collaborator permissions.
"""

import json
from pathlib import Path
from typing import Iterable, Optional, Protocol

from github import GithubException

from ..errors import AuthorizationDenied, ConfigurationError
from ..tools import GitHubTool
from ..utils import get_logger

REVERT_ACTION = "revert"


class Authorizer(Protocol):
    """Raises AuthorizationDenied when an actor may not perform an action."""

    def authorize(self, actor: str, action: str) -> None:
        ...


class DenyAllAuthorizer:
    """Used when no policy is configured."""

    def authorize(self, actor: str, action: str) -> None:
        raise AuthorizationDenied(actor, action, "no authorization policy configured")


class AllowListAuthorizer:
    """Allows a fixed set of actors per action."""

    def __init__(self, allowed: dict):
        self.allowed = {action: {a.lower() for a in actors} for action, actors in allowed.items()}

    @classmethod
    def from_file(cls, path: Path) -> "AllowListAuthorizer":
        """
        Load a policy file of the form {"revert": ["alice", "bob"]}.

        Raises:
            ConfigurationError: If the file is missing or malformed
        """
        try:
            data = json.loads(Path(path).read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read authorization policy {path}: {e}") from e

        if not isinstance(data, dict) or not all(isinstance(v, list) for v in data.values()):
            raise ConfigurationError(f"Authorization policy {path} must map actions to actor lists")
        return cls(data)

    def authorize(self, actor: str, action: str) -> None:
        if not actor or actor.lower() not in self.allowed.get(action, set()):
            raise AuthorizationDenied(actor, action, "not on the allow list")


class RepositoryPermissionAuthorizer:
    """Allows actors holding one of the given repository permissions."""

    def __init__(self, github: GitHubTool, permissions: Iterable[str] = ("admin", "maintain")):
        self.github = github
        self.permissions = set(permissions)
        self.logger = get_logger()

    def authorize(self, actor: str, action: str) -> None:
        if not actor:
            raise AuthorizationDenied(actor, action, "unknown actor")
        try:
            permission = self.github.collaborator_permission(actor)
        except GithubException as e:
            raise AuthorizationDenied(actor, action, f"permission lookup failed: {e}") from e

        if permission not in self.permissions:
            raise AuthorizationDenied(actor, action, f"permission '{permission}' is insufficient")
        self.logger.debug(f"{actor} authorized for {action} ({permission})")


def build_authorizer(policy_path: Optional[str], github: Optional[GitHubTool] = None) -> Authorizer:
    """
    Pick the authorizer for this deployment.

    An explicit policy file wins, then repository permissions; with neither,
    every request is denied.
    """
    if policy_path:
        return AllowListAuthorizer.from_file(Path(policy_path))
    if github is not None:
        return RepositoryPermissionAuthorizer(github)
    return DenyAllAuthorizer()
