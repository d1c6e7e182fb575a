"""Command: static audit of the rendered deployment."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from stackctl.commands._base import StackCommand

if TYPE_CHECKING:
    from stackctl.commands._context import AppContext


@click.command(
    cls=StackCommand,
    examples="""\
  stackctl check
  stackctl check --errors-only
  stackctl check --min-severity error
  stackctl --json check""",
)
@click.option(
    "--min-severity",
    type=click.Choice(["warning", "error"]),
    default="warning",
    help="Hide issues below this severity.",
)
@click.option("--errors-only", is_flag=True, help="Shortcut for --min-severity error.")
@click.option("--strict", is_flag=True, help="Exit 1 when any error-severity issue is found.")
@click.pass_obj
def check(app: AppContext, min_severity: str, errors_only: bool, strict: bool) -> None:
    """Check segmentation, secrets, certificates and the proxy config."""
    from stackctl.services.check import CheckService

    threshold = "error" if errors_only else min_severity
    result = CheckService(app.settings).check(min_severity=threshold)
    app.emit(result)
    if strict and not result.data.get("healthy", True):
        raise SystemExit(1)
