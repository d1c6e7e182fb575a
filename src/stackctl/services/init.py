"""InitService — scaffold a project and render its deployment files.

Generated files (``docker-compose.yml``, ``nginx/nginx.conf``) are rewritten
on every render. Scaffolded files the operator is expected to own
(``stackctl.toml``, the backend ``Dockerfile``, ``.gitignore``) are only
written when absent, or with ``force``.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from stackctl.domain.topology import validate_topology
from stackctl.domain.types import Severity
from stackctl.infrastructure.rendering import (
    RenderError,
    render_backend_dockerfile,
    render_compose,
    render_nginx_conf,
)
from stackctl.infrastructure.templates import build_template_environment
from stackctl.services.base import BaseService
from stackctl.services.result import ServiceResult, fail
from stackctl.services.telemetry import trace_span, traced

logger = structlog.get_logger(__name__)


class InitService(BaseService):
    """Writes the deployment bundle into ``settings.output_root``."""

    def _relative(self, path: Path) -> str:
        try:
            return str(path.relative_to(self.settings.output_root))
        except ValueError:
            return str(path)

    def _write(self, path: Path, content: str, *, overwrite: bool) -> bool:
        if path.exists() and not overwrite:
            return False
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        logger.debug("file.written", path=str(path))
        return True

    @traced
    def render(self, *, force: bool = False) -> ServiceResult:
        """Render compose, nginx and Dockerfile from the current settings."""
        op = "render"
        settings = self.settings
        topology = self.topology

        errors = [i for i in validate_topology(topology) if i.severity == Severity.ERROR]
        if errors:
            return fail(
                op,
                "TOPOLOGY_VIOLATION",
                f"Refusing to render: {errors[0].message}",
                issues=[i.to_dict() for i in errors],
            )

        try:
            with trace_span("render_files"):
                files = {
                    settings.compose_path: (
                        render_compose(topology, project_name=settings.project.name),
                        True,
                    ),
                    settings.nginx_conf_path: (
                        render_nginx_conf(
                            topology, settings.proxy, project_root=settings.project_root
                        ),
                        True,
                    ),
                    settings.dockerfile_path: (
                        render_backend_dockerfile(
                            settings.backend, project_root=settings.project_root
                        ),
                        force,
                    ),
                    settings.output_root / ".gitignore": (self._gitignore(), force),
                }
        except RenderError as exc:
            return fail(op, "RENDER_FAILED", str(exc))

        written: list[str] = []
        kept: list[str] = []
        for path, (content, overwrite) in files.items():
            if self._write(path, content, overwrite=overwrite):
                written.append(self._relative(path))
            else:
                kept.append(self._relative(path))

        return ServiceResult(
            ok=True,
            op=op,
            data={
                "output_dir": str(settings.output_root),
                "written": written,
                "kept": kept,
            },
        )

    def _gitignore(self) -> str:
        env = build_template_environment("project", project_root=self.settings.project_root)
        return env.get_template("gitignore.j2").render(
            secrets_dir=self.settings.secrets.dir,
            certs_dir=self.settings.certs.dir,
        )

    @traced
    def init_project(self, *, force: bool = False, with_artifacts: bool = True) -> ServiceResult:
        """Create stackctl.toml, render every file, and create missing artifacts."""
        op = "init"
        settings = self.settings
        settings.project_root.mkdir(parents=True, exist_ok=True)

        config_file = settings.project_root / "stackctl.toml"
        env = build_template_environment("project", project_root=settings.project_root)
        toml_text = env.get_template("stackctl.toml.j2").render(
            project_name=settings.project.name,
            server_name=settings.proxy.server_name,
            common_name=settings.certs.common_name,
        )
        config_written = self._write(config_file, toml_text, overwrite=force)

        rendered = self.render(force=force)
        if not rendered.ok:
            return rendered.as_op(op)

        data = {
            "project": settings.project.name,
            "project_root": str(settings.project_root),
            "config": str(config_file) if config_written else None,
            "written": rendered.data["written"],
            "kept": rendered.data["kept"],
        }
        warnings = list(rendered.warnings)

        if with_artifacts:
            from stackctl.services.artifacts import ArtifactService

            artifacts = ArtifactService(settings).generate()
            if not artifacts.ok:
                return artifacts.as_op(op)
            data["artifacts"] = artifacts.data
            warnings.extend(artifacts.warnings)

        return ServiceResult(ok=True, op=op, data=data, warnings=warnings)
