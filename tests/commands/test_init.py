"""Tests for `stackctl init` and `stackctl render`."""

from __future__ import annotations

import json
import tomllib
from pathlib import Path

import pytest
from click.testing import CliRunner

from stackctl.cli import cli


@pytest.fixture(autouse=True)
def _in_tmp(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)


class TestInitCommand:
    def test_non_interactive(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        target = tmp_path / "deploy"
        result = cli_runner.invoke(
            cli,
            ["--no-interact", "init", str(target), "--name", "shop", "--server-name", "shop.test"],
        )
        assert result.exit_code == 0, result.output
        config = tomllib.loads((target / "stackctl.toml").read_text(encoding="utf-8"))
        assert config["project"]["name"] == "shop"
        assert config["proxy"]["server_name"] == "shop.test"
        assert "server_name shop.test;" in (target / "nginx" / "nginx.conf").read_text(
            encoding="utf-8"
        )
        assert (target / "secrets" / "db_root_password.txt").is_file()

    def test_defaults_to_directory_name(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        result = cli_runner.invoke(cli, ["--no-interact", "init", "myshop", "--no-artifacts"])
        assert result.exit_code == 0, result.output
        config = tomllib.loads((tmp_path / "myshop" / "stackctl.toml").read_text(encoding="utf-8"))
        assert config["project"]["name"] == "myshop"
        assert not (tmp_path / "myshop" / "secrets").exists()

    def test_interactive_prompts(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        result = cli_runner.invoke(
            cli, ["init", "stack", "--no-artifacts"], input="webapp\nweb.test\n"
        )
        assert result.exit_code == 0, result.output
        assert "Project name" in result.output
        config = tomllib.loads((tmp_path / "stack" / "stackctl.toml").read_text(encoding="utf-8"))
        assert config["project"]["name"] == "webapp"
        assert config["certs"]["common_name"] == "web.test"

    def test_json_output(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        result = cli_runner.invoke(
            cli, ["--json", "--no-interact", "init", "stack", "--name", "shop"]
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["ok"] is True
        assert data["op"] == "init"
        assert data["data"]["artifacts"]["certificate"]["created"] is True

    def test_rerun_keeps_secrets(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        args = ["--no-interact", "init", "stack", "--name", "shop"]
        cli_runner.invoke(cli, args)
        secret = (tmp_path / "stack" / "secrets" / "db_password.txt").read_text(encoding="utf-8")
        result = cli_runner.invoke(cli, args)
        assert result.exit_code == 0
        assert (tmp_path / "stack" / "secrets" / "db_password.txt").read_text(
            encoding="utf-8"
        ) == secret


@pytest.mark.usefixtures("_isolated_project")
class TestRenderCommand:
    def test_rewrites_compose(self, cli_runner: CliRunner) -> None:
        compose = Path("docker-compose.yml")
        compose.unlink()
        result = cli_runner.invoke(cli, ["render"])
        assert result.exit_code == 0, result.output
        assert compose.is_file()
        assert "docker-compose.yml" in result.output

    def test_picks_up_config_change(self, cli_runner: CliRunner) -> None:
        config = Path("stackctl.toml")
        config.write_text(
            config.read_text(encoding="utf-8") + "\n[backend]\nport = 9000\n", encoding="utf-8"
        )
        result = cli_runner.invoke(cli, ["render"])
        assert result.exit_code == 0, result.output
        assert "proxy_pass http://backend:9000;" in Path("nginx/nginx.conf").read_text(
            encoding="utf-8"
        )

    def test_quiet(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(cli, ["-q", "render"])
        assert result.output.strip() == "OK: render"
