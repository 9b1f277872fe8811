"""Tests for gate and unit configuration."""

import json

import pytest

from integration_gate.config import (
    DEFAULT_CHECK_COMMANDS,
    GateConfig,
    load_unit_config,
    parse_unit_config,
)
from integration_gate.errors import ConfigurationError
from integration_gate.models import CheckName


class TestGateConfig:
    """Tests for environment-driven configuration."""

    def test_default_config_values(self):
        """Default config should encode the dmz -> main policy."""
        # When
        config = GateConfig()

        # Then
        assert config.integration_branch == "dmz"
        assert config.stable_branch == "main"
        assert config.check_timeout_seconds == 900.0
        assert config.revert_policy_path is None

    def test_from_env(self, monkeypatch):
        """Given environment variables, config should pick them up."""
        # Given
        monkeypatch.setenv("GITHUB_REPOSITORY", "acme/starters")
        monkeypatch.setenv("INTEGRATION_BRANCH", "staging")
        monkeypatch.setenv("CHECK_TIMEOUT", "60")
        monkeypatch.setenv("POST_STATUS", "false")
        monkeypatch.setenv("REVERT_POLICY_PATH", "/etc/gate/revert.json")

        # When
        config = GateConfig.from_env()

        # Then
        assert config.repo == "acme/starters"
        assert config.integration_branch == "staging"
        assert config.check_timeout_seconds == 60.0
        assert config.post_status is False
        assert config.revert_policy_path == "/etc/gate/revert.json"


class TestUnitConfig:
    """Tests for the unit configuration file."""

    def test_missing_file_falls_back_to_defaults(self, tmp_path):
        """Given no config file, the four starters are configured."""
        # When
        config = load_unit_config(tmp_path / "missing.json")

        # Then
        assert len(config.enabled_units) == 4
        assert "package.json" in config.global_patterns
        assert config.checks == DEFAULT_CHECK_COMMANDS

    def test_load_file(self, tmp_path):
        """Given a config file, units, patterns and checks are read from it."""
        # Given
        path = tmp_path / ".integration-gate.json"
        path.write_text(json.dumps({
            "units": [
                {"name": "kit-a", "paths": ["apps/kit-a"]},
                {"name": "kit-b", "enabled": False},
            ],
            "global_patterns": ["pnpm-lock.yaml"],
            "checks": {"test": "pnpm test --run"},
        }))

        # When
        config = load_unit_config(path)

        # Then
        assert [u.name for u in config.enabled_units] == ["kit-a"]
        assert config.get_unit("kit-a").paths == ["apps/kit-a"]
        assert config.get_unit("kit-b").paths == ["kit-b"]
        assert config.global_patterns == ["pnpm-lock.yaml"]
        assert config.checks[CheckName.TEST] == ["pnpm", "test", "--run"]
        assert config.checks[CheckName.LINT] == DEFAULT_CHECK_COMMANDS[CheckName.LINT]

    def test_empty_units_rejected(self):
        with pytest.raises(ConfigurationError, match="at least one unit"):
            parse_unit_config({"units": []})

    def test_duplicate_unit_rejected(self):
        with pytest.raises(ConfigurationError, match="Duplicate unit"):
            parse_unit_config({"units": [{"name": "kit-a"}, {"name": "kit-a"}]})

    def test_unknown_check_rejected(self):
        with pytest.raises(ConfigurationError, match="Unknown check"):
            parse_unit_config({"units": [{"name": "kit-a"}], "checks": {"deploy": ["make"]}})

    def test_invalid_json_rejected(self, tmp_path):
        # Given
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        # When / Then
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            load_unit_config(path)

    def test_round_trip_through_dict(self, unit_config):
        """The default config written by `init` loads back unchanged."""
        # When
        loaded = parse_unit_config(unit_config.to_dict())

        # Then
        assert [u.name for u in loaded.units] == [u.name for u in unit_config.units]
        assert loaded.checks == unit_config.checks
