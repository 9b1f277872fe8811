"""Configuration for the integration gate."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .errors import ConfigurationError
from .models import CheckName, Unit


def _env_flag(name: str, default: str = "true") -> bool:
    return os.environ.get(name, default).lower() == "true"


@dataclass
class GateConfig:
    """Runtime configuration for the gate controller."""

    # GitHub settings
    repo: str = ""
    github_token: Optional[str] = None

    # Branch policy
    integration_branch: str = "dmz"
    stable_branch: str = "main"

    # Unit configuration file (units, global patterns, check commands)
    config_path: str = ".integration-gate.json"

    # Validation
    check_timeout_seconds: float = 900.0   # Per-check wall clock limit
    max_parallel_units: int = 4

    # Reporting
    post_status: bool = True              # Post/update the status comment
    publish_commit_status: bool = True    # Set the integration-gate commit status

    # Revert
    push_reverts: bool = True             # Push the revert commit to origin
    revert_policy_path: Optional[str] = None  # Allow-list kept outside the workflow files

    work_dir: str = "."

    @classmethod
    def from_env(cls) -> "GateConfig":
        """Create config from environment variables."""
        return cls(
            repo=os.environ.get("GITHUB_REPOSITORY", ""),
            github_token=os.environ.get("GITHUB_TOKEN"),
            integration_branch=os.environ.get("INTEGRATION_BRANCH", "dmz"),
            stable_branch=os.environ.get("STABLE_BRANCH", "main"),
            config_path=os.environ.get("GATE_CONFIG_PATH", ".integration-gate.json"),
            check_timeout_seconds=float(os.environ.get("CHECK_TIMEOUT", "900")),
            max_parallel_units=int(os.environ.get("MAX_PARALLEL_UNITS", "4")),
            post_status=_env_flag("POST_STATUS"),
            publish_commit_status=_env_flag("PUBLISH_COMMIT_STATUS"),
            push_reverts=_env_flag("PUSH_REVERTS"),
            revert_policy_path=os.environ.get("REVERT_POLICY_PATH") or None,
            work_dir=os.environ.get("WORK_DIR", "."),
        )


DEFAULT_CHECK_COMMANDS: Dict[CheckName, List[str]] = {
    CheckName.LINT: ["npm", "run", "lint"],
    CheckName.FORMAT: ["npm", "run", "format:check"],
    CheckName.TYPE_CHECK: ["npm", "run", "type-check"],
    CheckName.BUILD: ["npm", "run", "build"],
    CheckName.TEST: ["npm", "test"],
}

DEFAULT_GLOBAL_PATTERNS: List[str] = [
    "package.json",
    "package-lock.json",
    ".github/workflows/*",
    ".nvmrc",
]


@dataclass
class UnitConfig:
    """Static unit configuration, loaded once per run and never mutated."""
    units: List[Unit]
    global_patterns: List[str] = field(default_factory=list)
    checks: Dict[CheckName, List[str]] = field(default_factory=lambda: dict(DEFAULT_CHECK_COMMANDS))

    @property
    def enabled_units(self) -> List[Unit]:
        return [u for u in self.units if u.enabled]

    def get_unit(self, name: str) -> Unit:
        for unit in self.units:
            if unit.name == name:
                return unit
        raise ConfigurationError(f"Unknown unit: {name}")

    def to_dict(self) -> dict:
        return {
            "units": [
                {"name": u.name, "paths": list(u.paths), "enabled": u.enabled}
                for u in self.units
            ],
            "global_patterns": list(self.global_patterns),
            "checks": {check.value: list(cmd) for check, cmd in self.checks.items()},
        }


def default_unit_config() -> UnitConfig:
    """The four Next.js starter kits with npm-script checks."""
    return UnitConfig(
        units=[
            Unit(name="kit-nextjs-skate-park"),
            Unit(name="kit-nextjs-article-starter"),
            Unit(name="kit-nextjs-location-finder"),
            Unit(name="kit-nextjs-product-listing"),
        ],
        global_patterns=list(DEFAULT_GLOBAL_PATTERNS),
    )


def parse_unit_config(data: dict) -> UnitConfig:
    """
    Build a UnitConfig from its JSON form.

    Raises:
        ConfigurationError: If the document is malformed
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Unit configuration must be a JSON object")

    raw_units = data.get("units")
    if not isinstance(raw_units, list) or not raw_units:
        raise ConfigurationError("Unit configuration must list at least one unit")

    units = []
    seen = set()
    for raw in raw_units:
        if not isinstance(raw, dict) or not raw.get("name"):
            raise ConfigurationError(f"Invalid unit entry: {raw!r}")
        name = str(raw["name"])
        if name in seen:
            raise ConfigurationError(f"Duplicate unit: {name}")
        seen.add(name)

        paths = raw.get("paths", [name])
        if isinstance(paths, str):
            paths = [paths]
        units.append(Unit(name=name, paths=[str(p) for p in paths], enabled=bool(raw.get("enabled", True))))

    patterns = data.get("global_patterns", list(DEFAULT_GLOBAL_PATTERNS))
    if not isinstance(patterns, list):
        raise ConfigurationError("global_patterns must be a list")

    checks = dict(DEFAULT_CHECK_COMMANDS)
    for check_name, command in (data.get("checks") or {}).items():
        try:
            check = CheckName(check_name)
        except ValueError:
            raise ConfigurationError(f"Unknown check: {check_name}") from None
        if isinstance(command, str):
            command = command.split()
        if not command:
            raise ConfigurationError(f"Empty command for check: {check_name}")
        checks[check] = [str(part) for part in command]

    return UnitConfig(units=units, global_patterns=[str(p) for p in patterns], checks=checks)


def load_unit_config(path: Optional[Path] = None) -> UnitConfig:
    """
    Load unit configuration from a JSON file.

    Falls back to default_unit_config() when the file does not exist.

    Args:
        path: Path to the configuration file

    Returns:
        UnitConfig
    """
    if path is None or not Path(path).exists():
        return default_unit_config()

    try:
        data = json.loads(Path(path).read_text())
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e

    return parse_unit_config(data)
