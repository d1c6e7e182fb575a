"""Locating and reading ``stackctl.toml``.

The file is found the way git finds ``.git/``: starting at a directory and
walking towards the filesystem root. ``STACKCTL_CONFIG`` short-circuits the
search; ``--config`` bypasses it entirely (see ``StackSettings.from_cli``).
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

import click

CONFIG_FILENAME = "stackctl.toml"
CONFIG_ENV_VAR = "STACKCTL_CONFIG"


def find_config(start: Path | None = None) -> Path | None:
    """Nearest ``stackctl.toml`` at or above *start* (default: cwd), or None."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        candidate = Path(override)
        return candidate if candidate.is_file() else None

    origin = (start or Path.cwd()).resolve()
    for directory in (origin, *origin.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def read_config(path: Path) -> dict[str, Any]:
    """Parse *path* as TOML. Syntax errors surface as a ClickException."""
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise click.ClickException(f"Invalid TOML in {path}: {exc}") from exc
