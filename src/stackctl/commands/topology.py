"""Command: show the service/network topology and its trust boundaries."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from stackctl.commands._base import StackCommand

if TYPE_CHECKING:
    from stackctl.commands._context import AppContext


@click.command(
    cls=StackCommand,
    examples="""\
  stackctl topology
  stackctl topology --from-file
  stackctl --json topology""",
)
@click.option(
    "--from-file",
    is_flag=True,
    help="Read the rendered docker-compose.yml instead of the settings.",
)
@click.pass_obj
def topology(app: AppContext, from_file: bool) -> None:
    """Show which service joins which network and what can reach the database."""
    from stackctl.services.topology import TopologyService

    app.emit(TopologyService(app.settings).show(from_file=from_file))
