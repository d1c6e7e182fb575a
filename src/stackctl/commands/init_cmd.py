"""Commands: project scaffolding (``init``) and re-rendering (``render``).

Named init_cmd to avoid shadowing builtins.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from stackctl.commands._base import StackCommand

if TYPE_CHECKING:
    from stackctl.commands._context import AppContext

_INIT_EXAMPLES = """\
  stackctl init
  stackctl init ./deploy --name shop
  stackctl init ./deploy --name shop --server-name shop.example.org
  stackctl --no-interact init /tmp/stack --name test --no-artifacts"""


@click.command("init", cls=StackCommand, examples=_INIT_EXAMPLES)
@click.argument("path", required=False, default=".")
@click.option("--name", default=None, help="Compose project name.")
@click.option("--server-name", default=None, help="Public host name (nginx and certificate).")
@click.option("--force", is_flag=True, help="Overwrite scaffolded files and artifacts.")
@click.option("--no-artifacts", is_flag=True, help="Skip secret and certificate generation.")
@click.pass_obj
def init_cmd(
    app: AppContext,
    path: str,
    name: str | None,
    server_name: str | None,
    force: bool,
    no_artifacts: bool,
) -> None:
    """Scaffold a deployment: compose file, nginx config, Dockerfile, secrets."""
    root = Path(path).resolve()

    if name is None:
        name = click.prompt("Project name", default=root.name) if app.interactive else root.name
    if server_name is None:
        default_host = app.settings.proxy.server_name
        server_name = (
            click.prompt("Server name", default=default_host) if app.interactive else default_host
        )

    from stackctl.config.settings import StackSettings
    from stackctl.services.init import InitService

    base = StackSettings.from_cli(
        project_root=root,
        json_output=app.settings.json_output,
        quiet=app.settings.quiet,
        verbose=app.settings.verbose,
        log_json=app.settings.log_json,
        no_interact=app.settings.no_interact,
    )
    settings = base.model_copy(
        update={
            "project": base.project.model_copy(update={"name": name}),
            "proxy": base.proxy.model_copy(update={"server_name": server_name}),
            "certs": base.certs.model_copy(update={"common_name": server_name}),
        }
    )
    app.emit(InitService(settings).init_project(force=force, with_artifacts=not no_artifacts))


@click.command(
    cls=StackCommand,
    examples="""\
  stackctl render
  stackctl render --force
  stackctl -c deploy/stackctl.toml render""",
)
@click.option("--force", is_flag=True, help="Also overwrite the Dockerfile and .gitignore.")
@click.pass_obj
def render(app: AppContext, force: bool) -> None:
    """Re-render docker-compose.yml and nginx.conf from stackctl.toml."""
    from stackctl.services.init import InitService

    app.emit(InitService(app.settings).render(force=force))
