from __future__ import annotations

from types import SimpleNamespace

from referral_engine.services.internal_auth import (
    extract_client_ip,
    is_client_ip_allowed,
    is_internal_request_authenticated,
    is_valid_internal_token,
    normalize_event_ip,
)


def test_is_valid_internal_token_requires_exact_match() -> None:
    assert is_valid_internal_token(expected_token="secret", received_token="secret") is True
    assert is_valid_internal_token(expected_token="secret", received_token="wrong") is False
    assert is_valid_internal_token(expected_token="secret", received_token=None) is False
    assert is_valid_internal_token(expected_token="", received_token="") is False


def test_is_internal_request_authenticated_reads_token_header() -> None:
    request_with_token = SimpleNamespace(headers={"X-Internal-Token": "secret"})
    assert is_internal_request_authenticated(request_with_token, expected_token="secret") is True

    request_without_token = SimpleNamespace(headers={})
    assert is_internal_request_authenticated(request_without_token, expected_token="secret") is False


def test_is_client_ip_allowed_supports_exact_ip_and_cidr() -> None:
    allowlist = "127.0.0.1,10.0.0.0/8"
    assert is_client_ip_allowed(client_ip="127.0.0.1", allowlist=allowlist) is True
    assert is_client_ip_allowed(client_ip="10.12.33.1", allowlist=allowlist) is True
    assert is_client_ip_allowed(client_ip="192.168.1.5", allowlist=allowlist) is False
    assert is_client_ip_allowed(client_ip=None, allowlist=allowlist) is False
    assert is_client_ip_allowed(client_ip="not-an-ip", allowlist=allowlist) is False


def test_is_client_ip_allowed_skips_malformed_allowlist_entries() -> None:
    assert is_client_ip_allowed(client_ip="10.0.0.1", allowlist="garbage, 10.0.0.0/24") is True


def test_extract_client_ip_uses_forwarded_header_only_for_trusted_proxy() -> None:
    request = SimpleNamespace(
        headers={"X-Forwarded-For": "10.1.1.8, 127.0.0.1"},
        client=SimpleNamespace(host="127.0.0.1"),
    )
    assert extract_client_ip(request, trusted_proxies="127.0.0.1/32") == "10.1.1.8"
    assert extract_client_ip(request, trusted_proxies="") == "127.0.0.1"


def test_extract_client_ip_handles_missing_client() -> None:
    request = SimpleNamespace(headers={}, client=None)
    assert extract_client_ip(request) is None


def test_normalize_event_ip_canonicalizes_or_drops_value() -> None:
    assert normalize_event_ip(" 203.0.113.7 ") == "203.0.113.7"
    assert normalize_event_ip("2001:DB8::1") == "2001:db8::1"
    assert normalize_event_ip("unknown") is None
    assert normalize_event_ip(None) is None


def test_normalize_event_ip_folds_ipv4_mapped_addresses() -> None:
    assert normalize_event_ip("::ffff:198.51.100.4") == "198.51.100.4"


def test_extract_client_ip_skips_every_trusted_hop() -> None:
    request = SimpleNamespace(
        headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.7, 10.0.0.8"},
        client=SimpleNamespace(host="10.0.0.9"),
    )

    assert extract_client_ip(request, trusted_proxies="10.0.0.0/8") == "203.0.113.9"


def test_extract_client_ip_ignores_header_from_untrusted_peer() -> None:
    request = SimpleNamespace(
        headers={"X-Forwarded-For": "203.0.113.9"},
        client=SimpleNamespace(host="198.51.100.1"),
    )

    assert extract_client_ip(request, trusted_proxies="10.0.0.0/8") == "198.51.100.1"
