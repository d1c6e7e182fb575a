"""Commands: stack lifecycle (``up``, ``down``, ``logs``, ``ps``)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from stackctl.commands._base import StackCommand

if TYPE_CHECKING:
    from stackctl.commands._context import AppContext


@click.command(
    cls=StackCommand,
    examples="""\
  stackctl up
  stackctl up --no-build""",
)
@click.option("--no-build", is_flag=True, help="Do not rebuild the backend image.")
@click.pass_obj
def up(app: AppContext, no_build: bool) -> None:
    """Start the stack. Refuses to start while a secret or the certificate is missing."""
    from stackctl.services.lifecycle import LifecycleService

    app.emit(LifecycleService(app.settings).up(build=not no_build))


@click.command(
    cls=StackCommand,
    examples="""\
  stackctl down
  stackctl down --volumes""",
)
@click.option("--volumes", is_flag=True, help="Also remove named volumes (database data).")
@click.pass_obj
def down(app: AppContext, volumes: bool) -> None:
    """Stop and remove the stack's containers and networks."""
    if volumes and app.interactive:
        click.confirm("Remove the database volume and all its data?", abort=True)

    from stackctl.services.lifecycle import LifecycleService

    app.emit(LifecycleService(app.settings).down(volumes=volumes))


@click.command(
    cls=StackCommand,
    examples="""\
  stackctl logs
  stackctl logs proxy --tail 50
  stackctl logs backend -f""",
)
@click.argument("service", required=False, default=None)
@click.option("-f", "--follow", is_flag=True, help="Follow log output.")
@click.option("--tail", type=int, default=None, help="Number of lines from the end.")
@click.pass_obj
def logs(app: AppContext, service: str | None, follow: bool, tail: int | None) -> None:
    """Stream container logs for one service or the whole stack."""
    from stackctl.services.lifecycle import LifecycleService

    result = LifecycleService(app.settings).logs(service, follow=follow, tail=tail)
    # On success the logs were already streamed; only failures need output.
    if not result.ok or app.settings.json_output:
        app.emit(result)


@click.command(
    cls=StackCommand,
    examples="""\
  stackctl ps
  stackctl -q ps""",
)
@click.pass_obj
def ps(app: AppContext) -> None:
    """Show the state of each service's container."""
    from stackctl.services.lifecycle import LifecycleService

    app.emit(LifecycleService(app.settings).status())
