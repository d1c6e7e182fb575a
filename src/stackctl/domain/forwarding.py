"""Forwarding contract between the TLS-terminating proxy and the backend.

The backend never sees the TLS layer, so the proxy attaches four headers
that let it reconstruct the client-facing context. The nginx variable for
each header is kept next to the header name; the rendered config and the
config linter both read from :data:`FORWARDED_HEADERS`.
"""

from __future__ import annotations

from collections.abc import Mapping

FORWARDED_HEADERS: dict[str, str] = {
    "Host": "$host",
    "X-Real-IP": "$remote_addr",
    "X-Forwarded-For": "$proxy_add_x_forwarded_for",
    "X-Forwarded-Proto": "$scheme",
}

# Statuses nginx answers with when the single upstream is down or silent.
GATEWAY_ERROR_STATUSES = frozenset({502, 504})


def is_gateway_error(status: int) -> bool:
    return status in GATEWAY_ERROR_STATUSES


def parse_forwarded_for(value: str | None) -> list[str]:
    """Split an ``X-Forwarded-For`` chain into addresses, oldest first."""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def expected_forwarded_headers(
    client_addr: str,
    host: str,
    *,
    scheme: str = "https",
    prior_chain: str | None = None,
) -> dict[str, str]:
    """Header values the upstream must observe for one proxied request.

    Mirrors nginx semantics: ``$proxy_add_x_forwarded_for`` appends the
    connecting address to whatever chain the client already sent.

    Examples:
        >>> expected_forwarded_headers("203.0.113.7", "localhost")["X-Forwarded-For"]
        '203.0.113.7'
        >>> expected_forwarded_headers("10.0.0.2", "example.org", prior_chain="198.51.100.1")[
        ...     "X-Forwarded-For"
        ... ]
        '198.51.100.1, 10.0.0.2'
    """
    chain = [*parse_forwarded_for(prior_chain), client_addr]
    return {
        "Host": host,
        "X-Real-IP": client_addr,
        "X-Forwarded-For": ", ".join(chain),
        "X-Forwarded-Proto": scheme,
    }


def original_client(headers: Mapping[str, str]) -> str | None:
    """Best guess at the originating client address seen by the upstream."""
    lowered = {k.lower(): v for k, v in headers.items()}
    chain = parse_forwarded_for(lowered.get("x-forwarded-for"))
    if chain:
        return chain[0]
    return lowered.get("x-real-ip")


def missing_forwarded_headers(headers: Mapping[str, str]) -> list[str]:
    """Contract headers absent from *headers* (case-insensitive)."""
    present = {k.lower() for k in headers}
    return [name for name in FORWARDED_HEADERS if name.lower() not in present]
