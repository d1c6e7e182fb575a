"""Secret and certificate files on the host.

Both are created once by the operator (``stackctl secrets generate``) and
then only read: bringing the stack down and up again never touches them.
Every generator is idempotent and only overwrites with ``force=True``.

Permissions: the secrets directory is 0700 so other host users cannot
list or open it, while the files inside are 0644 because compose bind-mounts
them as-is and the MySQL entrypoint reads them after dropping to the
``mysql`` user. The private key is 0600; nginx reads it as root.
"""

from __future__ import annotations

import ipaddress
import os
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

SECRET_FILE_MODE = 0o644
SECRET_DIR_MODE = 0o700
KEY_FILE_MODE = 0o600
CERT_FILE_MODE = 0o644


class ArtifactError(Exception):
    """Base for secret/certificate problems. ``code`` maps to ServiceError codes."""

    code = "INVALID_ARTIFACT"

    def __init__(self, message: str, path: Path) -> None:
        super().__init__(message)
        self.path = path


class MissingArtifactError(ArtifactError):
    code = "MISSING_ARTIFACT"


class InvalidArtifactError(ArtifactError):
    code = "INVALID_ARTIFACT"


def _write_file(path: Path, data: bytes, mode: int) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "wb") as fh:
        fh.write(data)
    # O_CREAT mode is filtered by the umask and ignored for existing files
    os.chmod(path, mode)


# ---------------------------------------------------------------------------
# Secrets
# ---------------------------------------------------------------------------


def generate_secret(path: Path, *, length: int = 32, force: bool = False) -> bool:
    """Write a random url-safe credential to *path*.

    Returns True if a new secret was written, False if an existing
    non-empty one was kept.
    """
    if not force and path.is_file() and path.read_text(encoding="utf-8").strip():
        return False
    if not path.parent.exists():
        path.parent.mkdir(parents=True, mode=SECRET_DIR_MODE)
    value = secrets.token_urlsafe(length)
    # No trailing newline; the mysql image reads the file verbatim.
    _write_file(path, value.encode("ascii"), SECRET_FILE_MODE)
    return True


def read_secret(path: Path) -> str:
    """Return the credential stored at *path*, stripped of trailing newlines."""
    if not path.is_file():
        msg = f"Secret file not found: {path}"
        raise MissingArtifactError(msg, path)
    value = path.read_text(encoding="utf-8").rstrip("\r\n")
    if not value.strip():
        msg = f"Secret file is empty: {path}"
        raise InvalidArtifactError(msg, path)
    return value


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CertificateInfo:
    """What ``inspect_certificate`` learned about a cert/key pair."""

    common_name: str
    sans: list[str]
    not_before: datetime
    not_after: datetime
    days_remaining: int
    fingerprint: str
    key_matches: bool
    self_signed: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "common_name": self.common_name,
            "sans": list(self.sans),
            "not_before": self.not_before.isoformat(),
            "not_after": self.not_after.isoformat(),
            "days_remaining": self.days_remaining,
            "fingerprint": self.fingerprint,
            "key_matches": self.key_matches,
            "self_signed": self.self_signed,
        }


def _subject_alt_names(common_name: str) -> list[x509.GeneralName]:
    names: list[x509.GeneralName] = []
    try:
        names.append(x509.IPAddress(ipaddress.ip_address(common_name)))
    except ValueError:
        names.append(x509.DNSName(common_name))
    loopback = x509.IPAddress(ipaddress.ip_address("127.0.0.1"))
    if loopback not in names:
        names.append(loopback)
    return names


def generate_certificate(
    cert_path: Path,
    key_path: Path,
    *,
    common_name: str = "localhost",
    days: int = 365,
    key_size: int = 2048,
    force: bool = False,
) -> bool:
    """Create a self-signed RSA certificate and its private key.

    The pair is always written together; if only one half exists both are
    regenerated. Returns True if new files were written.
    """
    if not force and cert_path.is_file() and key_path.is_file():
        return False

    key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(UTC)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(minutes=5))
        .not_valid_after(now + timedelta(days=days))
        .add_extension(x509.SubjectAlternativeName(_subject_alt_names(common_name)), critical=False)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )

    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    _write_file(key_path, key_pem, KEY_FILE_MODE)
    _write_file(cert_path, cert.public_bytes(serialization.Encoding.PEM), CERT_FILE_MODE)
    return True


def load_certificate(path: Path) -> x509.Certificate:
    if not path.is_file():
        msg = f"Certificate not found: {path}"
        raise MissingArtifactError(msg, path)
    try:
        return x509.load_pem_x509_certificate(path.read_bytes())
    except ValueError as exc:
        msg = f"Certificate is not valid PEM: {path}"
        raise InvalidArtifactError(msg, path) from exc


def load_private_key(path: Path) -> Any:
    if not path.is_file():
        msg = f"Private key not found: {path}"
        raise MissingArtifactError(msg, path)
    try:
        return serialization.load_pem_private_key(path.read_bytes(), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        msg = f"Private key is unreadable or encrypted: {path}"
        raise InvalidArtifactError(msg, path) from exc


def certificate_fingerprint(cert: x509.Certificate | bytes) -> str:
    """Colon-separated SHA-256 fingerprint of a certificate (or its DER bytes)."""
    if isinstance(cert, bytes):
        cert = x509.load_der_x509_certificate(cert)
    digest = cert.fingerprint(hashes.SHA256())
    return ":".join(f"{b:02X}" for b in digest)


def _spki(public_key: Any) -> bytes:
    return public_key.public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def inspect_certificate(
    cert_path: Path,
    key_path: Path,
    *,
    now: datetime | None = None,
) -> CertificateInfo:
    """Describe the configured pair; raises ArtifactError if either half is bad."""
    cert = load_certificate(cert_path)
    key = load_private_key(key_path)
    now = now or datetime.now(UTC)

    cn_attrs = cert.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    common_name = str(cn_attrs[0].value) if cn_attrs else ""
    try:
        ext = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
        sans = [str(name.value) for name in ext.value]
    except x509.ExtensionNotFound:
        sans = []

    not_after = cert.not_valid_after_utc
    return CertificateInfo(
        common_name=common_name,
        sans=sans,
        not_before=cert.not_valid_before_utc,
        not_after=not_after,
        days_remaining=(not_after - now).days,
        fingerprint=certificate_fingerprint(cert),
        key_matches=_spki(cert.public_key()) == _spki(key.public_key()),
        self_signed=cert.issuer == cert.subject,
    )


def needs_renewal(info: CertificateInfo, renew_before_days: int) -> bool:
    return info.days_remaining < renew_before_days
