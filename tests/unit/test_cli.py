"""Test the click command line."""

import json

import pytest
from click.testing import CliRunner

from capped_sale.cli import main


pytestmark = pytest.mark.usefixtures("restore_logging")


class TestSimulateCommand:
    def test_replays_example_config(self, example_config_path):
        result = CliRunner().invoke(
            main,
            ["simulate", "--config", str(example_config_path), "--log-level", "CRITICAL"],
        )
        assert result.exit_code == 0, result.output
        summary = json.loads(result.stdout)
        assert summary["sale"]["raised_total"] == 100 * 10**18
        assert summary["sale"]["participant_cap"] == 25 * 10**18
        statuses = [p["status"] for p in summary["purchases"]]
        assert statuses == [
            "completed",
            "rejected",
            "rejected",
            "rejected",
            "completed",
            "completed",
        ]

    def test_missing_config_is_usage_error(self, tmp_path):
        result = CliRunner().invoke(
            main, ["simulate", "--config", str(tmp_path / "absent.toml")]
        )
        assert result.exit_code != 0
        assert "not found" in result.output


class TestConfigCommand:
    def test_prints_defaults(self):
        result = CliRunner().invoke(main, ["config"])
        assert result.exit_code == 0
        settings = json.loads(result.stdout)
        assert settings["sale"]["max_whitelist_batch"] == 30

    def test_prints_file_values(self, example_config_path):
        result = CliRunner().invoke(main, ["config", "--config", str(example_config_path)])
        assert result.exit_code == 0
        settings = json.loads(result.stdout)
        assert settings["observability"]["log_format"] == "console"
        assert settings["simulation"]["whitelist"] == ["alice", "bob", "carol", "dave"]
