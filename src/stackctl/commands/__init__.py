"""Subcommand modules for stackctl.

Provides register_commands(), which imports command modules lazily so
``stackctl --help`` stays fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all command groups and standalone commands on the root CLI group."""
    # --- Groups ---
    from stackctl.commands.probe import probe
    from stackctl.commands.secrets import secrets

    cli.add_command(secrets)
    cli.add_command(probe)

    # --- Standalone commands ---
    from stackctl.commands.check import check
    from stackctl.commands.init_cmd import init_cmd, render
    from stackctl.commands.lifecycle import down, logs, ps, up
    from stackctl.commands.topology import topology

    cli.add_command(init_cmd)
    cli.add_command(render)
    cli.add_command(topology)
    cli.add_command(check)
    cli.add_command(up)
    cli.add_command(down)
    cli.add_command(logs)
    cli.add_command(ps)
