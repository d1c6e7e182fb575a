"""Tests for the TLS and HTTPS client primitives against local sockets."""

from __future__ import annotations

import socket
import ssl
import threading
from collections.abc import Generator
from pathlib import Path

import pytest

from stackctl.infrastructure.artifacts import (
    certificate_fingerprint,
    generate_certificate,
    load_certificate,
)
from stackctl.infrastructure.network import (
    ProbeError,
    fetch_peer_certificate,
    https_get,
    pinned_context,
)


def _free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


@pytest.fixture
def cert_pair(tmp_path: Path) -> tuple[Path, Path]:
    cert, key = tmp_path / "cert.pem", tmp_path / "key.pem"
    generate_certificate(cert, key, common_name="127.0.0.1")
    return cert, key


@pytest.fixture
def tls_server(cert_pair: tuple[Path, Path]) -> Generator[int]:
    """One-shot TLS listener on 127.0.0.1 presenting *cert_pair*."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(*cert_pair)
    listener = socket.create_server(("127.0.0.1", 0))
    listener.settimeout(5)

    def serve() -> None:
        try:
            conn, _ = listener.accept()
        except OSError:
            return
        with conn:
            try:
                with context.wrap_socket(conn, server_side=True) as tls:
                    tls.recv(1)
            except (OSError, ssl.SSLError):
                pass

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    yield int(listener.getsockname()[1])
    listener.close()
    thread.join(timeout=5)


class TestPeerCertificate:
    def test_presented_certificate_matches_disk(
        self, tls_server: int, cert_pair: tuple[Path, Path]
    ) -> None:
        der = fetch_peer_certificate("127.0.0.1", tls_server)
        assert certificate_fingerprint(der) == certificate_fingerprint(
            load_certificate(cert_pair[0])
        )

    def test_refused(self) -> None:
        with pytest.raises(ProbeError, match="handshake"):
            fetch_peer_certificate("127.0.0.1", _free_port(), timeout=1.0)


class TestHttpsGet:
    def test_pinned_context_requires_verification(self, cert_pair: tuple[Path, Path]) -> None:
        context = pinned_context(cert_pair[0])
        assert context.verify_mode == ssl.CERT_REQUIRED
        assert context.check_hostname is True
        assert context.minimum_version == ssl.TLSVersion.TLSv1_2

    def test_refused(self, cert_pair: tuple[Path, Path]) -> None:
        url = f"https://127.0.0.1:{_free_port()}/"
        with pytest.raises(ProbeError, match="failed"):
            https_get(url, cert_path=cert_pair[0], timeout=1.0)

    def test_untrusted_certificate(self, tls_server: int, tmp_path: Path) -> None:
        other = tmp_path / "other"
        generate_certificate(other / "cert.pem", other / "key.pem", common_name="127.0.0.1")
        with pytest.raises(ProbeError):
            https_get(f"https://127.0.0.1:{tls_server}/", cert_path=other / "cert.pem")
