"""ArtifactService — the database credentials and the proxy's certificate pair."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog

from stackctl.infrastructure.artifacts import (
    ArtifactError,
    generate_certificate,
    generate_secret,
    inspect_certificate,
    needs_renewal,
    read_secret,
)
from stackctl.services.base import BaseService
from stackctl.services.result import ServiceResult, fail
from stackctl.services.telemetry import traced

logger = structlog.get_logger(__name__)


class ArtifactService(BaseService):
    """Creates, inspects, and rotates the files mounted into the containers."""

    def _secret_paths(self) -> list[Path]:
        return [self.settings.root_password_path, self.settings.app_password_path]

    @traced
    def generate(self, *, force: bool = False) -> ServiceResult:
        """Create any missing secret or certificate. Existing ones are kept."""
        settings = self.settings
        secrets_out: list[dict[str, Any]] = []
        for path in self._secret_paths():
            created = generate_secret(path, length=settings.secrets.length, force=force)
            logger.info("secret.generated" if created else "secret.kept", path=str(path))
            secrets_out.append({"path": str(path), "created": created})

        cert_created = generate_certificate(
            settings.cert_path,
            settings.key_path,
            common_name=settings.certs.common_name,
            days=settings.certs.days,
            key_size=settings.certs.key_size,
            force=force,
        )
        try:
            info = inspect_certificate(settings.cert_path, settings.key_path)
        except ArtifactError as exc:
            return fail(
                "generate",
                exc.code,
                f"{exc} (re-run with --force to replace it)",
                path=str(exc.path),
            )

        warnings: list[str] = []
        if force:
            warnings.append("Existing artifacts were replaced; restart the stack to load them")
        return ServiceResult(
            ok=True,
            op="generate",
            data={
                "secrets": secrets_out,
                "certificate": {
                    "cert": str(settings.cert_path),
                    "key": str(settings.key_path),
                    "created": cert_created,
                    "fingerprint": info.fingerprint,
                    "not_after": info.not_after.isoformat(),
                },
            },
            warnings=warnings,
        )

    @traced
    def rotate_certificate(self, *, force: bool = False) -> ServiceResult:
        """Replace the certificate when it is close to expiry, broken, or on demand."""
        op = "rotate"
        settings = self.settings
        reason: str | None = "forced" if force else None
        previous: str | None = None
        try:
            info = inspect_certificate(settings.cert_path, settings.key_path)
            previous = info.fingerprint
            if reason is None and not info.key_matches:
                reason = "key does not match certificate"
            elif reason is None and needs_renewal(info, settings.certs.renew_before_days):
                reason = f"expires in {info.days_remaining} days"
        except ArtifactError as exc:
            reason = str(exc)

        if reason is None:
            return ServiceResult(
                ok=True,
                op=op,
                data={
                    "rotated": False,
                    "reason": "certificate is current",
                    "fingerprint": previous,
                },
            )

        generate_certificate(
            settings.cert_path,
            settings.key_path,
            common_name=settings.certs.common_name,
            days=settings.certs.days,
            key_size=settings.certs.key_size,
            force=True,
        )
        info = inspect_certificate(settings.cert_path, settings.key_path)
        logger.info("certificate.rotated", reason=reason, fingerprint=info.fingerprint)
        return ServiceResult(
            ok=True,
            op=op,
            data={
                "rotated": True,
                "reason": reason,
                "previous_fingerprint": previous,
                "fingerprint": info.fingerprint,
                "not_after": info.not_after.isoformat(),
            },
            warnings=[f"Restart '{settings.proxy.service_name}' to serve the new certificate"],
        )

    def problems(self) -> list[ArtifactError]:
        """Every missing or invalid artifact, in mount order."""
        found: list[ArtifactError] = []
        for path in self._secret_paths():
            try:
                read_secret(path)
            except ArtifactError as exc:
                found.append(exc)
        try:
            info = inspect_certificate(self.settings.cert_path, self.settings.key_path)
        except ArtifactError as exc:
            found.append(exc)
        else:
            if not info.key_matches:
                found.append(
                    ArtifactError(
                        "Private key does not match the certificate", self.settings.key_path
                    )
                )
        return found

    @traced
    def verify(self) -> ServiceResult:
        """Fail with the first missing/invalid artifact, missing ones first."""
        found = self.problems()
        if found:
            first = sorted(found, key=lambda e: e.code != "MISSING_ARTIFACT")[0]
            return fail(
                "verify",
                first.code,
                str(first),
                problems=[{"code": e.code, "path": str(e.path), "message": str(e)} for e in found],
            )
        checked = [*self._secret_paths(), self.settings.cert_path, self.settings.key_path]
        return ServiceResult(ok=True, op="verify", data={"checked": [str(p) for p in checked]})

    @traced
    def status(self) -> ServiceResult:
        """Report each artifact without modifying anything."""
        settings = self.settings
        entries: list[dict[str, Any]] = []
        for path in self._secret_paths():
            entry: dict[str, Any] = {"kind": "secret", "path": str(path)}
            try:
                read_secret(path)
                entry["state"] = "ok"
            except ArtifactError as exc:
                entry["state"] = exc.code.lower()
                entry["message"] = str(exc)
            entries.append(entry)

        cert: dict[str, Any] = {
            "kind": "certificate",
            "path": str(settings.cert_path),
            "key": str(settings.key_path),
        }
        try:
            info = inspect_certificate(settings.cert_path, settings.key_path)
        except ArtifactError as exc:
            cert["state"] = exc.code.lower()
            cert["message"] = str(exc)
        else:
            cert.update(info.to_dict())
            if not info.key_matches:
                cert["state"] = "invalid_artifact"
            elif info.days_remaining < 0:
                cert["state"] = "expired"
            elif needs_renewal(info, settings.certs.renew_before_days):
                cert["state"] = "renew"
            else:
                cert["state"] = "ok"
        entries.append(cert)

        return ServiceResult(
            ok=True,
            op="artifacts",
            data={"items": entries, "healthy": all(e["state"] == "ok" for e in entries)},
        )
