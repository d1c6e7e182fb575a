"""Tests for the root CLI group: global flags, config errors, logging."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from stackctl import __version__
from stackctl.cli import cli


@pytest.fixture(autouse=True)
def _in_tmp(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)


class TestRootGroup:
    def test_version(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_no_subcommand_prints_help(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, [])
        assert result.exit_code == 0
        assert "Usage:" in result.output

    def test_unknown_command(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["deploy"])
        assert result.exit_code == 2


class TestConfigErrors:
    def test_invalid_toml(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        (tmp_path / "stackctl.toml").write_text("[proxy\n", encoding="utf-8")
        result = cli_runner.invoke(cli, ["topology"])
        assert result.exit_code == 1
        assert "Invalid TOML" in result.output

    def test_invalid_value(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        (tmp_path / "stackctl.toml").write_text('[database]\nuser = "root"\n', encoding="utf-8")
        result = cli_runner.invoke(cli, ["topology"])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_explicit_config(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        config = tmp_path / "elsewhere" / "stackctl.toml"
        config.parent.mkdir()
        config.write_text('[proxy]\nservice_name = "edge"\n', encoding="utf-8")
        result = cli_runner.invoke(cli, ["--json", "-c", str(config), "topology"])
        assert result.exit_code == 0, result.output
        names = [s["name"] for s in json.loads(result.output)["data"]["services"]]
        assert "edge" in names

    def test_env_override(self, cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STACKCTL_BACKEND__SERVICE_NAME", "api")
        result = cli_runner.invoke(cli, ["--json", "topology"])
        data = json.loads(result.output)["data"]
        assert data["pivot_paths"]["proxy->db"] == ["proxy", "api", "db"]


class TestGlobalFlags:
    def test_verbose_attaches_telemetry(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["-v", "topology"])
        assert result.exit_code == 0, result.output
        assert "TopologyService.show" in result.output

    def test_json_output_is_parseable(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "topology"])
        assert json.loads(result.output)["ok"] is True

    def test_failure_exits_1(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["ps"])
        assert result.exit_code == 1
        assert "NOT_INITIALIZED" in result.output
