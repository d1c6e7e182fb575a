"""Command group: live probes against a running stack."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from stackctl.commands._base import StackGroup

if TYPE_CHECKING:
    from stackctl.commands._context import AppContext

_PROBE_EXAMPLES = """\
  stackctl probe tls
  stackctl probe headers
  stackctl probe gateway --stop-backend
  stackctl probe isolation"""


@click.group(cls=StackGroup, examples=_PROBE_EXAMPLES)
def probe() -> None:
    """Verify TLS, forwarding, gateway errors and network isolation."""


@probe.command(examples="  stackctl probe tls\n  stackctl --json probe tls")
@click.pass_obj
def tls(app: AppContext) -> None:
    """Check the proxy presents the locally generated certificate."""
    from stackctl.services.probe import ProbeService

    app.emit(ProbeService(app.settings).tls())


@probe.command(examples="  stackctl probe headers\n  stackctl -v probe headers")
@click.pass_obj
def headers(app: AppContext) -> None:
    """Check the proxy attaches the forwarding headers."""
    from stackctl.services.probe import ProbeService

    app.emit(ProbeService(app.settings).headers())


@probe.command(
    examples="""\
  stackctl probe gateway --stop-backend
  stackctl probe gateway"""
)
@click.option(
    "--stop-backend",
    is_flag=True,
    help="Stop the backend for the probe and start it again afterwards.",
)
@click.pass_obj
def gateway(app: AppContext, stop_backend: bool) -> None:
    """Check the proxy answers 502/504 while the backend is down."""
    from stackctl.services.probe import ProbeService

    app.emit(ProbeService(app.settings).gateway(stop_backend=stop_backend))


@probe.command(examples="  stackctl probe isolation")
@click.pass_obj
def isolation(app: AppContext) -> None:
    """Check the database is reachable from the backend but not from the proxy."""
    from stackctl.services.probe import ProbeService

    app.emit(ProbeService(app.settings).isolation())
