"""Client-side network access to a running proxy.

Two primitives: fetch the certificate the proxy presents during the TLS
handshake, and issue a single HTTPS request pinned to the locally
generated certificate. Neither retries.
"""

from __future__ import annotations

import socket
import ssl
from pathlib import Path

import httpx
import structlog

logger = structlog.get_logger(__name__)


class ProbeError(Exception):
    """The proxy could not be reached or the handshake did not complete."""


def fetch_peer_certificate(host: str, port: int, *, timeout: float = 5.0) -> bytes:
    """DER bytes of the certificate presented by ``host:port``.

    Verification is disabled on purpose: the caller compares the returned
    certificate against the one on disk.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    try:
        with socket.create_connection((host, port), timeout=timeout) as sock:
            with context.wrap_socket(sock, server_hostname=host) as tls:
                der = tls.getpeercert(binary_form=True)
                logger.debug("tls.handshake", host=host, port=port, version=tls.version())
    except (OSError, ssl.SSLError) as exc:
        raise ProbeError(f"TLS handshake with {host}:{port} failed: {exc}") from exc
    if not der:
        raise ProbeError(f"{host}:{port} presented no certificate")
    return der


def pinned_context(cert_path: Path) -> ssl.SSLContext:
    """An SSL context that trusts only *cert_path*."""
    context = ssl.create_default_context(cafile=str(cert_path))
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    # the pinned leaf is its own issuer and carries no CA key usage
    context.verify_flags &= ~ssl.VERIFY_X509_STRICT
    return context


def https_get(
    url: str,
    *,
    cert_path: Path,
    timeout: float = 5.0,
    headers: dict[str, str] | None = None,
) -> httpx.Response:
    """Single GET against the proxy, trusting only the generated certificate."""
    try:
        with httpx.Client(verify=pinned_context(cert_path), timeout=timeout) as client:
            response = client.get(url, headers=headers)
    except httpx.TimeoutException as exc:
        raise ProbeError(f"GET {url} timed out after {timeout}s") from exc
    except httpx.TransportError as exc:
        raise ProbeError(f"GET {url} failed: {exc}") from exc
    logger.debug("http.response", url=url, status=response.status_code)
    return response
