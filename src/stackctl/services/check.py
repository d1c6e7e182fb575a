"""CheckService — static audit of a rendered project.

Single command following the linter pattern. Nothing is started and
nothing is modified; every finding becomes an issue with a severity.
Categories: rendered files, topology (segmentation, secrets, exposure,
durability), proxy contract, artifacts.
"""

from __future__ import annotations

import stat

from stackctl.domain.topology import Issue, Topology, validate_topology
from stackctl.domain.types import Category, Severity
from stackctl.infrastructure.artifacts import ArtifactError, inspect_certificate, needs_renewal
from stackctl.infrastructure.rendering import RenderError, lint_nginx_conf
from stackctl.services.base import BaseService
from stackctl.services.result import ServiceResult
from stackctl.services.telemetry import trace_span, traced
from stackctl.services.topology import topology_from_file

_SEVERITY_RANK = {Severity.WARNING: 0, Severity.ERROR: 1}


class CheckService(BaseService):
    """Audits the files on disk against the trust-boundary rules."""

    @traced
    def check(self, *, min_severity: str = "warning") -> ServiceResult:
        """Report issues without modifying anything."""
        issues: list[Issue] = []
        topology: Topology | None = None

        with trace_span("compose"):
            topology, found = self._check_compose()
            issues.extend(found)
        if topology is not None:
            with trace_span("topology"):
                issues.extend(validate_topology(topology))
                issues.extend(self._check_drift(topology))
            with trace_span("nginx"):
                issues.extend(self._check_nginx(topology))
        with trace_span("artifacts"):
            issues.extend(self._check_artifacts())

        threshold = _SEVERITY_RANK[Severity(min_severity)]
        shown = [i for i in issues if _SEVERITY_RANK[i.severity] >= threshold]
        healthy = not any(i.severity == Severity.ERROR for i in issues)
        return ServiceResult(
            ok=True,
            op="check",
            data={
                "issues": [i.to_dict() for i in shown],
                "count": len(shown),
                "error_count": sum(1 for i in shown if i.severity == Severity.ERROR),
                "warning_count": sum(1 for i in shown if i.severity == Severity.WARNING),
                "by_category": summarize(shown),
                "healthy": healthy,
            },
        )

    # ------------------------------------------------------------------
    # Rendered files
    # ------------------------------------------------------------------

    def _check_compose(self) -> tuple[Topology | None, list[Issue]]:
        path = self.settings.compose_path
        if not path.is_file():
            return None, [
                Issue(
                    Severity.ERROR,
                    Category.FILES,
                    f"{path.name} not found; run `stackctl render`",
                )
            ]
        try:
            return topology_from_file(self.settings), []
        except ValueError as exc:
            return None, [Issue(Severity.ERROR, Category.FILES, str(exc))]

    def _check_drift(self, actual: Topology) -> list[Issue]:
        """Differences between the rendered file and what the settings describe."""
        issues: list[Issue] = []
        desired = self.topology
        desired_names = {s.name for s in desired.services}
        actual_names = {s.name for s in actual.services}
        for name in sorted(desired_names - actual_names):
            msg = f"Service '{name}' is missing from the compose file"
            issues.append(Issue(Severity.ERROR, Category.FILES, msg, (name,)))
        for name in sorted(actual_names - desired_names):
            issues.append(
                Issue(
                    Severity.WARNING,
                    Category.FILES,
                    f"Service '{name}' is not managed by stackctl",
                    (name,),
                )
            )
        for name in sorted(desired_names & actual_names):
            want = set(desired.service(name).networks)
            have = set(actual.service(name).networks)
            if want != have:
                issues.append(
                    Issue(
                        Severity.WARNING,
                        Category.NETWORKS,
                        f"Service '{name}' networks {sorted(have)} differ from {sorted(want)}; "
                        "re-run `stackctl render`",
                        (name,),
                    )
                )
        return issues

    def _check_nginx(self, topology: Topology) -> list[Issue]:
        path = self.settings.nginx_conf_path
        if not path.is_file():
            return [Issue(Severity.ERROR, Category.PROXY, f"{path} not found")]
        try:
            text = path.read_text(encoding="utf-8")
            problems = lint_nginx_conf(text, topology, self.settings.proxy)
        except RenderError as exc:
            return [Issue(Severity.ERROR, Category.PROXY, str(exc))]
        return [Issue(Severity.ERROR, Category.PROXY, f"nginx.conf: {p}") for p in problems]

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def _check_artifacts(self) -> list[Issue]:
        from stackctl.services.artifacts import ArtifactService

        settings = self.settings
        issues: list[Issue] = []
        for problem in ArtifactService(settings).problems():
            secret_paths = {settings.root_password_path, settings.app_password_path}
            category = Category.SECRETS if problem.path in secret_paths else Category.CERTIFICATES
            issues.append(Issue(Severity.ERROR, category, str(problem)))

        secrets_dir = settings.root_password_path.parent
        if secrets_dir.is_dir() and stat.S_IMODE(secrets_dir.stat().st_mode) & 0o077:
            issues.append(
                Issue(
                    Severity.WARNING,
                    Category.SECRETS,
                    f"{secrets_dir} is accessible to other users; chmod 700 it",
                )
            )

        try:
            info = inspect_certificate(settings.cert_path, settings.key_path)
        except ArtifactError:
            return issues  # already reported above
        if info.days_remaining < 0:
            issues.append(Issue(Severity.ERROR, Category.CERTIFICATES, "Certificate has expired"))
        elif needs_renewal(info, settings.certs.renew_before_days):
            issues.append(
                Issue(
                    Severity.WARNING,
                    Category.CERTIFICATES,
                    f"Certificate expires in {info.days_remaining} days; "
                    "run `stackctl secrets rotate`",
                )
            )
        if info.self_signed:
            issues.append(
                Issue(
                    Severity.WARNING,
                    Category.CERTIFICATES,
                    "Certificate is self-signed; clients must pin or trust it explicitly",
                )
            )
        return issues


def summarize(issues: list[Issue]) -> dict[str, int]:
    """Issue counts per category."""
    counts: dict[str, int] = {}
    for issue in issues:
        key = str(issue.category)
        counts[key] = counts.get(key, 0) + 1
    return counts
