"""Shared pytest fixtures and helpers for stackctl tests."""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner
from ruamel.yaml import YAML

from stackctl.config.settings import StackSettings
from stackctl.infrastructure.compose import ComposeRunner


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None]:
    """Keep the developer's STACKCTL_* environment and telemetry state out of tests."""
    for key in list(os.environ):
        if key.startswith("STACKCTL_"):
            monkeypatch.delenv(key)
    yield
    from stackctl.services.telemetry import disable_telemetry

    disable_telemetry()
    # AppContext binds the log handler to the CliRunner stream of that invocation
    root = logging.getLogger()
    for handler in list(root.handlers):
        if handler.get_name() == "stackctl-stderr":
            root.removeHandler(handler)


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Empty project directory. Single source of truth for the project layout."""
    root = tmp_path / "stack"
    root.mkdir()
    return root


@pytest.fixture
def settings(project_root: Path) -> StackSettings:
    """Default settings rooted at *project_root* (no stackctl.toml)."""
    return StackSettings.from_cli(project_root=project_root)


@pytest.fixture
def rendered_project(settings: StackSettings) -> StackSettings:
    """A project with every file rendered and every artifact generated."""
    from stackctl.services.init import InitService

    result = InitService(settings).init_project()
    assert result.ok, result.error
    return settings


@pytest.fixture
def _isolated_project(rendered_project: StackSettings, monkeypatch: pytest.MonkeyPatch) -> None:
    """Change CWD into a fully rendered project so the CLI discovers it.

    Use via ``@pytest.mark.usefixtures("_isolated_project")`` on command test
    classes.
    """
    monkeypatch.chdir(rendered_project.project_root)


@pytest.fixture
def mock_runner() -> MagicMock:
    """A ComposeRunner double whose calls all succeed."""
    runner = MagicMock(spec=ComposeRunner)
    runner.ps.return_value = []
    runner.logs.return_value = 0
    runner.exec.return_value = _completed(1)
    return runner


@pytest.fixture
def completed() -> Callable[..., subprocess.CompletedProcess[str]]:
    """Factory for CompletedProcess values returned by a mocked subprocess.run."""
    return _completed


def _completed(
    returncode: int = 0, stdout: str = "", stderr: str = ""
) -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.fixture
def edit_compose(rendered_project: StackSettings) -> Callable[[Callable[[Any], None]], None]:
    """Apply a hand edit to the rendered compose file, round-tripped through ruamel."""

    def _edit(change: Callable[[Any], None]) -> None:
        yaml = YAML()
        path = rendered_project.compose_path
        doc = yaml.load(path)
        change(doc)
        yaml.dump(doc, path)

    return _edit
