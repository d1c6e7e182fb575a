"""Command group: database credentials and the proxy certificate."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from stackctl.commands._base import StackGroup

if TYPE_CHECKING:
    from stackctl.commands._context import AppContext

_SECRETS_EXAMPLES = """\
  stackctl secrets generate
  stackctl secrets status
  stackctl secrets rotate
  stackctl secrets rotate --force"""


@click.group(cls=StackGroup, examples=_SECRETS_EXAMPLES)
def secrets() -> None:
    """Create, inspect and rotate the files mounted into the containers."""


@secrets.command(
    examples="""\
  stackctl secrets generate
  stackctl --no-interact secrets generate --force"""
)
@click.option("--force", is_flag=True, help="Replace existing secrets and certificate.")
@click.pass_obj
def generate(app: AppContext, force: bool) -> None:
    """Create missing secrets and the self-signed certificate."""
    if force and app.interactive:
        click.confirm(
            "Replacing the database credentials locks the app out of an existing "
            "data volume. Continue?",
            abort=True,
        )

    from stackctl.services.artifacts import ArtifactService

    app.emit(ArtifactService(app.settings).generate(force=force))


@secrets.command(
    examples="""\
  stackctl secrets rotate
  stackctl secrets rotate --force"""
)
@click.option("--force", is_flag=True, help="Rotate even if the certificate is current.")
@click.pass_obj
def rotate(app: AppContext, force: bool) -> None:
    """Regenerate the certificate when it is expiring, broken, or on demand."""
    from stackctl.services.artifacts import ArtifactService

    app.emit(ArtifactService(app.settings).rotate_certificate(force=force))


@secrets.command(
    examples="""\
  stackctl secrets status
  stackctl --json secrets status"""
)
@click.pass_obj
def status(app: AppContext) -> None:
    """Show each secret and the certificate without modifying them."""
    from stackctl.services.artifacts import ArtifactService

    app.emit(ArtifactService(app.settings).status())
