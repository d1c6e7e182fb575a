"""Rich Console factory and theme for stackctl output.

Consoles render into a StringIO buffer so every renderer keeps the
``format_result() -> str`` contract. Under CliRunner or a pipe Rich
detects no terminal and emits plain text.
"""

from __future__ import annotations

from io import StringIO

from rich.console import Console
from rich.theme import Theme

STACK_THEME = Theme(
    {
        "stack.ok": "bold green",
        "stack.error": "bold red",
        "stack.warning": "bold yellow",
        "stack.op": "bold cyan",
        "stack.key": "dim",
        "stack.path": "dim",
        "stack.service": "bold blue",
        "stack.network": "magenta",
        "stack.role.proxy": "cyan",
        "stack.role.backend": "green",
        "stack.role.database": "yellow",
        "stack.fingerprint": "dim cyan",
    }
)

_ROLE_STYLES: dict[str, str] = {
    "proxy": "stack.role.proxy",
    "backend": "stack.role.backend",
    "database": "stack.role.database",
}

_STATE_STYLES: dict[str, str] = {
    "ok": "stack.ok",
    "running": "stack.ok",
    "open": "stack.ok",
    "closed": "stack.ok",
    "renew": "stack.warning",
    "absent": "stack.warning",
    "exited": "stack.error",
    "expired": "stack.error",
    "missing_artifact": "stack.error",
    "invalid_artifact": "stack.error",
}


def create_console(*, no_color: bool = False, width: int | None = None) -> Console:
    """Create a Console that renders to a StringIO buffer.

    Args:
        no_color: Disable ANSI escape codes (used in tests).
        width: Override terminal width (useful for consistent test output).
    """
    return Console(
        file=StringIO(),
        theme=STACK_THEME,
        no_color=no_color,
        highlight=False,
        width=width or 120,
    )


def get_output(console: Console) -> str:
    """Extract rendered text from a StringIO-backed Console."""
    assert isinstance(console.file, StringIO)
    return console.file.getvalue()


def style_for_role(role: str | None) -> str:
    return _ROLE_STYLES.get(role or "", "")


def style_for_state(state: str) -> str:
    return _STATE_STYLES.get(state, "")
