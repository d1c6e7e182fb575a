"""LifecycleService — bring the stack up, tear it down, stream logs.

``up`` runs a preflight before touching docker: the rendered topology must
pass validation and every secret and certificate must be present and
readable. A missing secret is fatal and never auto-generated here, so
restarting the stack never changes the credentials or the certificate.
"""

from __future__ import annotations

from typing import Any

import structlog

from stackctl.domain.topology import validate_topology
from stackctl.domain.types import Severity
from stackctl.infrastructure.compose import ComposeError
from stackctl.services.artifacts import ArtifactService
from stackctl.services.base import BaseService
from stackctl.services.result import ServiceResult, fail
from stackctl.services.telemetry import trace_span, traced
from stackctl.services.topology import topology_from_file

logger = structlog.get_logger(__name__)


class LifecycleService(BaseService):
    """Operator lifecycle controls over ``docker compose``."""

    def _not_initialized(self, op: str) -> ServiceResult | None:
        path = self.settings.compose_path
        if path.is_file():
            return None
        return fail(op, "NOT_INITIALIZED", f"{path} not found; run `stackctl init`", path=str(path))

    def preflight(self, op: str = "up") -> ServiceResult | None:
        """None when the stack may start, otherwise the failing result."""
        missing = self._not_initialized(op)
        if missing is not None:
            return missing
        try:
            topology = topology_from_file(self.settings)
        except ValueError as exc:
            return fail(op, "PARSE_FAILED", str(exc))
        errors = [i for i in validate_topology(topology) if i.severity == Severity.ERROR]
        if errors:
            return fail(
                op,
                "TOPOLOGY_VIOLATION",
                errors[0].message,
                issues=[i.to_dict() for i in errors],
            )
        verified = ArtifactService(self.settings).verify()
        if not verified.ok:
            return verified.as_op(op)
        return None

    @traced
    def up(self, *, build: bool = True) -> ServiceResult:
        op = "up"
        with trace_span("preflight"):
            blocked = self.preflight(op)
        if blocked is not None:
            return blocked
        try:
            with trace_span("compose_up"):
                self.runner.up(detach=True, build=build)
        except ComposeError as exc:
            return fail(op, exc.code, str(exc), **exc.detail())

        proxy = self.settings.proxy
        logger.info("stack.up", project=self.settings.project.name)
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "project": self.settings.project.name,
                "services": [s.name for s in self.topology.services],
                "endpoint": f"https://{self.settings.probe.host}:{proxy.port}/",
            },
        )

    @traced
    def down(self, *, volumes: bool = False) -> ServiceResult:
        op = "down"
        missing = self._not_initialized(op)
        if missing is not None:
            return missing
        try:
            self.runner.down(volumes=volumes)
        except ComposeError as exc:
            return fail(op, exc.code, str(exc), **exc.detail())

        warnings: list[str] = []
        if volumes:
            warnings.append("Named volumes were removed; database contents are gone")
        logger.info("stack.down", project=self.settings.project.name, volumes=volumes)
        return ServiceResult(
            ok=True,
            op=op,
            data={"project": self.settings.project.name, "volumes_removed": volumes},
            warnings=warnings,
        )

    def logs(
        self,
        service: str | None = None,
        *,
        follow: bool = False,
        tail: int | None = None,
    ) -> ServiceResult:
        op = "logs"
        missing = self._not_initialized(op)
        if missing is not None:
            return missing
        if service is not None:
            try:
                self.topology.service(service)
            except ValueError as exc:
                known = [s.name for s in self.topology.services]
                return fail(op, "UNKNOWN_SERVICE", str(exc), known=known)
        try:
            code = self.runner.logs(service, follow=follow, tail=tail)
        except ComposeError as exc:
            return fail(op, exc.code, str(exc), **exc.detail())
        return ServiceResult(ok=True, op=op, data={"service": service, "exit_code": code})

    @traced
    def status(self) -> ServiceResult:
        op = "ps"
        missing = self._not_initialized(op)
        if missing is not None:
            return missing
        try:
            rows = self.runner.ps()
        except ComposeError as exc:
            return fail(op, exc.code, str(exc), **exc.detail())

        by_service = {str(row.get("Service", "")): row for row in rows}
        items: list[dict[str, Any]] = []
        for svc in self.topology.services:
            row = by_service.get(svc.name)
            items.append(
                {
                    "service": svc.name,
                    "role": str(svc.role),
                    "state": str(row.get("State", "unknown")) if row else "absent",
                    "status": str(row.get("Status", "")) if row else "",
                    "container": str(row.get("Name", "")) if row else "",
                }
            )
        running = sum(1 for i in items if i["state"] == "running")
        return ServiceResult(
            ok=True,
            op=op,
            data={"items": items, "running": running, "count": len(items)},
        )
