#!/usr/bin/env python3
"""
Integration Gate - Main Entry Point

Guards a two-branch policy: change requests target the integration branch
(dmz), validated integration heads are fast-forwarded onto the stable
branch (main), and bad commits are reverted on dmz with a tracking issue.

Usage:
    python -m integration_gate.main validate --pr-number 123
    python -m integration_gate.main promote --sha <commit>
    python -m integration_gate.main revert --reason "Broke the build"

Or via GitHub Actions (see `integration-gate init`)
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import GateConfig, UnitConfig, load_unit_config
from .errors import (
    AuthorizationDenied,
    ConfigurationError,
    GateError,
    GitCommandError,
    RevertConflict,
    UnsupportedEvent,
)
from .events import ChangeRequestEvent, DispatchEvent, PushEvent, load_event_from_env
from .gate import (
    BranchLocks,
    ChangeDetector,
    FastForwarder,
    GateController,
    Notifier,
    RevertController,
    SubprocessCheckInvoker,
    ValidationRunner,
    build_authorizer,
)
from .models import GateOutcome, GateState
from .tools import GitHubTool, GitTool, changed_paths_from_diff
from .utils import setup_logging, get_logger

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFLICT = 2


class GateApp:
    """Wires configuration, tools and gate components for one CLI run."""

    def __init__(self, config: GateConfig, unit_config: Optional[UnitConfig] = None):
        self.config = config
        self.work_dir = Path(config.work_dir)
        self.unit_config = unit_config or load_unit_config(self.work_dir / config.config_path)
        self.locks = BranchLocks()
        self.logger = get_logger()

        self.github: Optional[GitHubTool] = None
        if config.repo and config.github_token:
            self.github = GitHubTool(repo=config.repo, token=config.github_token)
        self.git = GitTool(self.work_dir, remote="origin" if self.github else None)

    def require_github(self) -> GitHubTool:
        if self.github is None:
            raise ConfigurationError("GITHUB_REPOSITORY and GITHUB_TOKEN are required for this command")
        return self.github

    def build_controller(self) -> GateController:
        invoker = SubprocessCheckInvoker(
            commands=self.unit_config.checks,
            work_dir=self.work_dir,
            timeout=self.config.check_timeout_seconds,
        )
        store = self.github if self.github is not None else self.git
        return GateController(
            unit_config=self.unit_config,
            runner=ValidationRunner(invoker, max_parallel=self.config.max_parallel_units),
            notifier=Notifier(self.github, enabled=self.config.post_status),
            fast_forwarder=FastForwarder(
                store,
                self.locks,
                stable_branch=self.config.stable_branch,
                integration_branch=self.config.integration_branch,
            ),
            integration_branch=self.config.integration_branch,
            publish_commit_status=self.config.publish_commit_status,
        )

    def build_revert_controller(self) -> RevertController:
        return RevertController(
            git=self.git,
            authorizer=build_authorizer(self.config.revert_policy_path, self.github),
            locks=self.locks,
            notifier=Notifier(self.github),
            github=self.github,
            integration_branch=self.config.integration_branch,
            push=self.config.push_reverts and self.github is not None,
        )

    def promotion_paths(self, sha: str, extra: Optional[List[str]] = None) -> List[str]:
        """Paths changed between the stable head and the commit being promoted."""
        store = self.github if self.github is not None else self.git
        paths = store.changed_paths(store.head(self.config.stable_branch), sha)
        for path in extra or []:
            if path not in paths:
                paths.append(path)
        return paths

    def prepare_tree(self, sha: str) -> str:
        """
        Put the working tree at the commit about to be validated.

        Checks run against whatever is checked out in work_dir, so the tree
        must match the head the verdict is recorded for.

        Returns:
            Full sha of the checked out commit

        Raises:
            ConfigurationError: If the commit cannot be checked out
        """
        try:
            target = self.git.rev_parse(sha)
            if self.git.rev_parse("HEAD") != target:
                self.logger.info(f"Checking out {target[:12]} for validation")
                self.git.checkout_detached(target)
            head = self.git.rev_parse("HEAD")
        except GitCommandError as e:
            raise ConfigurationError(f"Cannot check out {sha} in {self.work_dir}: {e.output.strip()}") from e

        if head != target:
            raise ConfigurationError(f"Working tree is at {head[:12]}, expected {target[:12]}")
        return target

    async def validate(self, pr_number: int) -> GateOutcome:
        cr = self.require_github().get_change_request(pr_number)
        cr.head_sha = self.prepare_tree(cr.head_sha)
        return await self.build_controller().submit_change_request(cr)

    async def promote(self, sha: str, paths: Optional[List[str]] = None) -> GateOutcome:
        sha = self.prepare_tree(sha)
        changed = self.promotion_paths(sha, paths)
        return await self.build_controller().handle_integration_push(
            self.config.integration_branch, sha, changed
        )

    async def revert(self, reason: str, commit: Optional[str], actor: str):
        return await self.build_revert_controller().revert(reason, commit=commit, actor=actor)


def _print_outcome(outcome: GateOutcome, as_json: bool) -> None:
    if as_json:
        print(json.dumps(outcome.to_dict(), indent=2))
        return

    print(f"\n=== Integration Gate: {outcome.state.value.upper()} ===")
    print(f"Head: {outcome.head_sha} ({outcome.source_ref})")
    print(f"Affected units: {', '.join(sorted(outcome.affected_units)) or 'none'}")
    for run in sorted(outcome.runs, key=lambda r: r.unit):
        print(f"  {run.unit}: {'PASS' if run.passed else 'FAIL'}")
        for result in run.failed_checks:
            print(f"    - {result.check.value}: {result.outcome.value}")
    if outcome.fast_forward is not None:
        ff = outcome.fast_forward
        print(f"Fast-forward {ff.branch}: {'done' if ff.success else 'REJECTED'}")
    if outcome.error:
        print(f"Error: {outcome.error}")


def _outcome_exit_code(outcome: GateOutcome) -> int:
    if outcome.fast_forward is not None and not outcome.fast_forward.success:
        return EXIT_CONFLICT
    if outcome.superseded or not outcome.allowed:
        return EXIT_FAILED
    if outcome.state in (GateState.PASSED, GateState.FAST_FORWARDED, GateState.MERGED):
        return EXIT_OK
    return EXIT_FAILED


def _setup(args) -> logging.Logger:
    # Keep stdout clean for machine-readable output
    stream = sys.stderr if getattr(args, "json", False) else sys.stdout
    setup_logging(level=logging.DEBUG if args.debug else logging.INFO, stream=stream)
    return get_logger()


def _config_from_args(args) -> GateConfig:
    config = GateConfig.from_env()
    if getattr(args, "repo", None):
        config.repo = args.repo
    if getattr(args, "config", None):
        config.config_path = args.config
    return config


def cmd_init(args):
    """Handle 'init' subcommand."""
    from .cli import init_repository

    target = Path(args.path) if args.path else Path.cwd()
    success = init_repository(
        target,
        integration_branch=args.integration_branch,
        stable_branch=args.stable_branch,
    )
    sys.exit(EXIT_OK if success else EXIT_FAILED)


def cmd_detect(args):
    """Handle 'detect' subcommand."""
    logger = _setup(args)
    config = _config_from_args(args)

    try:
        unit_config = load_unit_config(Path(config.work_dir) / config.config_path)
        detector = ChangeDetector(unit_config.units, unit_config.global_patterns)
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(EXIT_FAILED)

    paths = list(args.paths or [])
    if args.diff_file:
        diff_text = sys.stdin.read() if args.diff_file == "-" else Path(args.diff_file).read_text()
        paths.extend(changed_paths_from_diff(diff_text))

    affected = sorted(detector.affected_units(paths))
    if args.json:
        print(json.dumps({"affected_units": affected, "matches": detector.explain(paths)}, indent=2))
    else:
        for unit in affected:
            print(unit)
    sys.exit(EXIT_OK)


def cmd_validate(args):
    """Handle 'validate' subcommand (change request flow)."""
    logger = _setup(args)
    config = _config_from_args(args)

    try:
        outcome = asyncio.run(GateApp(config).validate(args.pr_number))
    except GateError as e:
        logger.error(str(e))
        sys.exit(EXIT_FAILED)
    except Exception as e:
        logger.exception(f"Validation failed: {e}")
        sys.exit(EXIT_FAILED)

    _print_outcome(outcome, args.json)
    sys.exit(_outcome_exit_code(outcome))


def cmd_promote(args):
    """Handle 'promote' subcommand (integration push flow)."""
    logger = _setup(args)
    config = _config_from_args(args)

    try:
        app = GateApp(config)
        sha = args.sha or app.git.rev_parse(config.integration_branch)
        outcome = asyncio.run(app.promote(sha, args.paths))
    except GateError as e:
        logger.error(str(e))
        sys.exit(EXIT_FAILED)
    except Exception as e:
        logger.exception(f"Promotion failed: {e}")
        sys.exit(EXIT_FAILED)

    _print_outcome(outcome, args.json)
    sys.exit(_outcome_exit_code(outcome))


def cmd_revert(args):
    """Handle 'revert' subcommand (manual dispatch)."""
    logger = _setup(args)
    config = _config_from_args(args)
    sys.exit(_run_revert(config, args.reason, args.commit, args.actor, args.json, logger))


def _run_revert(config: GateConfig, reason: str, commit: Optional[str], actor: str,
                as_json: bool, logger: logging.Logger) -> int:
    try:
        record = asyncio.run(GateApp(config).revert(reason, commit, actor))
    except (AuthorizationDenied, RevertConflict) as e:
        logger.error(str(e))
        if as_json:
            print(json.dumps({"error": e.code, "message": e.message,
                              "paths": getattr(e, "paths", [])}, indent=2))
        return EXIT_CONFLICT
    except (GateError, ValueError) as e:
        logger.error(str(e))
        return EXIT_FAILED
    except Exception as e:
        logger.exception(f"Revert failed: {e}")
        return EXIT_FAILED

    if as_json:
        print(json.dumps(record.to_dict(), indent=2))
    else:
        print(f"Reverted {record.target_sha} as {record.revert_sha}")
        if record.tracking_issue is not None:
            print(f"Tracking issue: #{record.tracking_issue}")
        if record.notified_change_requests:
            print(f"Notified: {', '.join(f'#{n}' for n in record.notified_change_requests)}")
    return EXIT_OK


def cmd_handle_event(args):
    """Handle 'handle-event' subcommand: dispatch the CI event in the environment."""
    logger = _setup(args)
    config = _config_from_args(args)

    try:
        event = load_event_from_env()
    except UnsupportedEvent as e:
        logger.error(str(e))
        sys.exit(EXIT_FAILED)

    if isinstance(event, DispatchEvent):
        actor = event.actor or args.actor
        sys.exit(_run_revert(config, event.reason, event.commit, actor, args.json, logger))

    try:
        app = GateApp(config)
        if isinstance(event, ChangeRequestEvent):
            outcome = asyncio.run(app.validate(event.number))
        elif isinstance(event, PushEvent):
            if event.branch != config.integration_branch:
                logger.info(f"Ignoring push to {event.branch}")
                sys.exit(EXIT_OK)
            outcome = asyncio.run(app.promote(event.head_sha, event.changed_paths))
        else:
            raise UnsupportedEvent(type(event).__name__)
    except GateError as e:
        logger.error(str(e))
        sys.exit(EXIT_FAILED)
    except Exception as e:
        logger.exception(f"Event handling failed: {e}")
        sys.exit(EXIT_FAILED)

    _print_outcome(outcome, args.json)
    sys.exit(_outcome_exit_code(outcome))


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--repo", type=str, help="Repository in format owner/repo")
    parser.add_argument("--config", type=str, help="Unit configuration file (default: .integration-gate.json)")
    parser.add_argument("--json", action="store_true", help="Print the structured result as JSON")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Integration gate for a dmz -> main branch policy"
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # init command
    init_parser = subparsers.add_parser("init", help="Add gate workflows and config to a repository")
    init_parser.add_argument(
        "path",
        nargs="?",
        help="Target repository path (default: current directory)"
    )
    init_parser.add_argument("--integration-branch", default="dmz", help="Integration branch (default: dmz)")
    init_parser.add_argument("--stable-branch", default="main", help="Stable branch (default: main)")

    # detect command
    detect_parser = subparsers.add_parser("detect", help="Show units affected by a set of changed paths")
    detect_parser.add_argument("--paths", nargs="*", help="Changed repo-relative paths")
    detect_parser.add_argument("--diff-file", type=str, help="Unified diff to read paths from ('-' for stdin)")
    _add_common(detect_parser)

    # validate command
    validate_parser = subparsers.add_parser("validate", help="Validate a change request")
    validate_parser.add_argument("--pr-number", type=int, required=True, help="Pull request number")
    _add_common(validate_parser)

    # promote command
    promote_parser = subparsers.add_parser(
        "promote",
        help="Validate the integration head and fast-forward the stable branch"
    )
    promote_parser.add_argument("--sha", type=str, help="Commit to promote (default: integration head)")
    promote_parser.add_argument("--paths", nargs="*", help="Extra changed paths to consider")
    _add_common(promote_parser)

    # revert command
    revert_parser = subparsers.add_parser("revert", help="Revert a commit on the integration branch")
    revert_parser.add_argument("--reason", type=str, required=True, help="Why the commit is reverted")
    revert_parser.add_argument("--commit", type=str, help="Commit to revert (default: integration head)")
    revert_parser.add_argument("--actor", type=str, default="", help="User requesting the revert")
    _add_common(revert_parser)

    # handle-event command
    event_parser = subparsers.add_parser("handle-event", help="Handle the current GitHub Actions event")
    event_parser.add_argument("--actor", type=str, default="", help="Fallback actor for dispatch events")
    _add_common(event_parser)

    args = parser.parse_args()

    # Route to subcommand
    if args.command == "init":
        cmd_init(args)
    elif args.command == "detect":
        cmd_detect(args)
    elif args.command == "validate":
        cmd_validate(args)
    elif args.command == "promote":
        cmd_promote(args)
    elif args.command == "revert":
        cmd_revert(args)
    elif args.command == "handle-event":
        cmd_handle_event(args)
    else:
        # No subcommand - show help
        parser.print_help()
        sys.exit(EXIT_OK)


if __name__ == "__main__":
    main()
