"""Tests for the proxy forwarding contract."""

import doctest

import pytest

from stackctl.domain import forwarding
from stackctl.domain.forwarding import (
    FORWARDED_HEADERS,
    expected_forwarded_headers,
    is_gateway_error,
    missing_forwarded_headers,
    original_client,
    parse_forwarded_for,
)


def test_module_examples() -> None:
    failures, _ = doctest.testmod(forwarding)
    assert failures == 0


class TestContract:
    def test_header_variables(self) -> None:
        assert FORWARDED_HEADERS == {
            "Host": "$host",
            "X-Real-IP": "$remote_addr",
            "X-Forwarded-For": "$proxy_add_x_forwarded_for",
            "X-Forwarded-Proto": "$scheme",
        }

    @pytest.mark.parametrize(("status", "expected"), [(502, True), (504, True), (500, False)])
    def test_gateway_errors(self, status: int, expected: bool) -> None:
        assert is_gateway_error(status) is expected


class TestForwardedFor:
    def test_parse_chain(self) -> None:
        assert parse_forwarded_for("198.51.100.1, 10.0.0.2,") == ["198.51.100.1", "10.0.0.2"]
        assert parse_forwarded_for(None) == []

    def test_expected_headers_direct_client(self) -> None:
        headers = expected_forwarded_headers("203.0.113.7", "shop.test")
        assert headers == {
            "Host": "shop.test",
            "X-Real-IP": "203.0.113.7",
            "X-Forwarded-For": "203.0.113.7",
            "X-Forwarded-Proto": "https",
        }

    def test_original_client_prefers_chain_head(self) -> None:
        headers = expected_forwarded_headers("10.0.0.2", "h", prior_chain="198.51.100.1")
        assert original_client(headers) == "198.51.100.1"

    def test_original_client_falls_back_to_real_ip(self) -> None:
        assert original_client({"x-real-ip": "203.0.113.9"}) == "203.0.113.9"
        assert original_client({}) is None

    def test_missing_headers_case_insensitive(self) -> None:
        seen = {"host": "h", "x-real-ip": "1.2.3.4"}
        assert missing_forwarded_headers(seen) == ["X-Forwarded-For", "X-Forwarded-Proto"]
