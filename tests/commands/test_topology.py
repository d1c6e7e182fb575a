"""Tests for `stackctl topology`."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from stackctl.cli import cli


@pytest.mark.usefixtures("_isolated_project")
class TestTopologyCommand:
    def test_human_output(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["topology"])
        assert result.exit_code == 0, result.output
        assert "proxy->db: via proxy -> backend -> db" in result.output
        assert "proxy-network" in result.output

    def test_from_file_json(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["--json", "topology", "--from-file"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)["data"]
        assert data["source"] == "file"
        assert data["reachability"]["db"] == ["backend"]


def test_from_file_without_project(
    cli_runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    result = cli_runner.invoke(cli, ["topology", "--from-file"])
    assert result.exit_code == 1
    assert "NOT_INITIALIZED" in result.output
