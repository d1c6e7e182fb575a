"""ProbeService — live checks against a running deployment.

Each probe answers one question about the stack as deployed:

- ``tls``: does the proxy present the certificate generated on this host?
- ``headers``: does the proxy attach the forwarding headers?
- ``gateway``: does the proxy answer 502/504 when the backend is gone?
- ``isolation``: is the database unreachable from the proxy container
  while still reachable from the backend?
"""

from __future__ import annotations

import math

import structlog

from stackctl.domain.forwarding import (
    FORWARDED_HEADERS,
    GATEWAY_ERROR_STATUSES,
    expected_forwarded_headers,
    is_gateway_error,
)
from stackctl.infrastructure.artifacts import (
    ArtifactError,
    certificate_fingerprint,
    load_certificate,
)
from stackctl.infrastructure.compose import ComposeError
from stackctl.infrastructure.network import ProbeError, fetch_peer_certificate, https_get
from stackctl.infrastructure.rendering import RenderError, lint_nginx_conf
from stackctl.services.base import BaseService
from stackctl.services.result import ServiceResult, fail
from stackctl.services.telemetry import trace_span, traced

logger = structlog.get_logger(__name__)

# exec exit statuses meaning the command itself could not run
_EXEC_UNAVAILABLE = frozenset({126, 127})

# Documentation address used to illustrate the header contract.
_SAMPLE_CLIENT = "203.0.113.10"


class ProbeService(BaseService):
    """Probes a stack started with ``stackctl up``."""

    @property
    def url(self) -> str:
        return f"https://{self.settings.probe.host}:{self.settings.proxy.port}/"

    @traced
    def tls(self) -> ServiceResult:
        """Compare the presented certificate with the one on disk."""
        op = "probe.tls"
        settings = self.settings
        try:
            expected = certificate_fingerprint(load_certificate(settings.cert_path))
        except ArtifactError as exc:
            return fail(op, exc.code, str(exc), path=str(exc.path))

        host, port = settings.probe.host, settings.proxy.port
        try:
            with trace_span("handshake"):
                der = fetch_peer_certificate(host, port, timeout=settings.probe.timeout)
        except ProbeError as exc:
            return fail(op, "HANDSHAKE_FAILED", str(exc), host=host, port=port)

        presented = certificate_fingerprint(der)
        if presented != expected:
            return fail(
                op,
                "TLS_MISMATCH",
                f"{host}:{port} presented a different certificate than {settings.cert_path}",
                expected=expected,
                presented=presented,
            )
        return ServiceResult(
            ok=True,
            op=op,
            data={"host": host, "port": port, "fingerprint": presented, "matches": True},
        )

    @traced
    def headers(self) -> ServiceResult:
        """Verify the rendered proxy config attaches every forwarding header."""
        op = "probe.headers"
        path = self.settings.nginx_conf_path
        if not path.is_file():
            return fail(op, "NOT_INITIALIZED", f"{path} not found; run `stackctl render`")
        try:
            problems = lint_nginx_conf(
                path.read_text(encoding="utf-8"), self.topology, self.settings.proxy
            )
        except RenderError as exc:
            return fail(op, "PARSE_FAILED", str(exc), path=str(path))

        header_problems = [p for p in problems if "proxy_set_header" in p]
        if header_problems:
            return fail(op, "HEADERS_MISSING", header_problems[0], problems=header_problems)

        warnings = [f"nginx.conf: {p}" for p in problems if p not in header_problems]
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "config": str(path),
                "directives": dict(FORWARDED_HEADERS),
                "example": {
                    "client": _SAMPLE_CLIENT,
                    "upstream_sees": expected_forwarded_headers(
                        _SAMPLE_CLIENT, self.settings.proxy.server_name
                    ),
                },
            },
            warnings=warnings,
        )

    @traced
    def gateway(self, *, stop_backend: bool = False) -> ServiceResult:
        """Expect a gateway error from the proxy while the backend is down.

        Without ``stop_backend`` the backend is assumed to be down already.
        With it, the backend is stopped first and always started again.
        """
        op = "probe.gateway"
        backend = self.settings.backend.service_name
        url = self.url
        warnings: list[str] = []

        if stop_backend:
            try:
                self.runner.stop(backend)
            except ComposeError as exc:
                return fail(op, exc.code, str(exc), **exc.detail())
        try:
            with trace_span("request"):
                response = https_get(
                    url, cert_path=self.settings.cert_path, timeout=self.settings.probe.timeout
                )
        except ProbeError as exc:
            return fail(op, "HANDSHAKE_FAILED", str(exc), url=url)
        finally:
            if stop_backend:
                self._restart(backend, warnings)

        status = response.status_code
        if not is_gateway_error(status):
            return fail(
                op,
                "UNEXPECTED_STATUS",
                f"Expected one of {sorted(GATEWAY_ERROR_STATUSES)} from {url}, got {status}",
                status=status,
            )
        return ServiceResult(
            ok=True,
            op=op,
            data={"url": url, "status": status, "backend_stopped": stop_backend},
            warnings=warnings,
        )

    def _restart(self, service: str, warnings: list[str]) -> None:
        try:
            self.runner.start(service)
        except ComposeError as exc:
            logger.warning("probe.restart_failed", service=service, error=str(exc))
            warnings.append(f"Could not restart '{service}': {exc}")

    @traced
    def isolation(self) -> ServiceResult:
        """Database port must be closed to the proxy and open to the backend.

        Both containers have to be running; an exec into a stopped one exits 1
        just like a refused connection.
        """
        op = "probe.isolation"
        settings = self.settings
        if not settings.compose_path.is_file():
            return fail(op, "NOT_INITIALIZED", f"{settings.compose_path} not found")

        db = settings.database.service_name
        port = str(settings.database.port)
        wait = str(max(1, math.ceil(settings.probe.timeout)))
        proxy = settings.proxy.service_name
        backend = settings.backend.service_name

        try:
            with trace_span("containers"):
                rows = self.runner.ps()
            states = {str(row.get("Service", "")): row.get("State") for row in rows}
            down = [svc for svc in (backend, proxy) if states.get(svc) != "running"]
            if down:
                return fail(
                    op,
                    "PROBE_INCONCLUSIVE",
                    f"'{down[0]}' is not running; start the stack with `stackctl up`",
                    states={svc: states.get(svc, "absent") for svc in down},
                )
            with trace_span("backend_to_db"):
                allowed = self.runner.exec(backend, "nc", "-z", "-w", wait, db, port)
            with trace_span("proxy_to_db"):
                denied = self.runner.exec(proxy, "nc", "-z", "-w", wait, db, port)
        except ComposeError as exc:
            return fail(op, exc.code, str(exc), **exc.detail())

        if denied.returncode == 0:
            return fail(
                op,
                "ISOLATION_BREACH",
                f"'{proxy}' reached {db}:{port}; the proxy must not share a network "
                "with the database",
            )
        if denied.returncode in _EXEC_UNAVAILABLE or "is not running" in (denied.stderr or ""):
            return fail(
                op,
                "PROBE_INCONCLUSIVE",
                f"Could not run nc inside '{proxy}'",
                returncode=denied.returncode,
                stderr=(denied.stderr or "").strip(),
            )
        if allowed.returncode != 0:
            # a refused proxy connection only counts once the backend path is open
            return fail(
                op,
                "PROBE_INCONCLUSIVE",
                f"'{backend}' could not reach {db}:{port}; is the stack running?",
                returncode=allowed.returncode,
                stderr=(allowed.stderr or "").strip(),
            )
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "target": f"{db}:{port}",
                "paths": {f"{backend}->{db}": "open", f"{proxy}->{db}": "closed"},
            },
        )
