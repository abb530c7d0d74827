from __future__ import annotations

import ipaddress
import secrets
from functools import lru_cache

from fastapi import Request

INTERNAL_TOKEN_HEADER = "X-Internal-Token"
FORWARDED_FOR_HEADER = "X-Forwarded-For"

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


def canonical_ip(value: str | None) -> IPAddress | None:
    """Parse an address, folding IPv4-mapped IPv6 (``::ffff:a.b.c.d``) to plain IPv4."""
    if value is None or not value.strip():
        return None
    try:
        address = ipaddress.ip_address(value.strip())
    except ValueError:
        return None
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address


def normalize_event_ip(value: str | None) -> str | None:
    # Velocity limits group conversions by this exact text.
    address = canonical_ip(value)
    return str(address) if address is not None else None


@lru_cache(maxsize=32)
def parse_networks(spec: str) -> tuple[IPNetwork, ...]:
    networks: list[IPNetwork] = []
    for entry in (part.strip() for part in spec.split(",")):
        if not entry:
            continue
        try:
            networks.append(ipaddress.ip_network(entry, strict=False))
        except ValueError:
            continue
    return tuple(networks)


def _in_networks(address: IPAddress, networks: tuple[IPNetwork, ...]) -> bool:
    return any(address.version == network.version and address in network for network in networks)


def is_client_ip_allowed(*, client_ip: str | None, allowlist: str) -> bool:
    address = canonical_ip(client_ip)
    if address is None:
        return False
    return _in_networks(address, parse_networks(allowlist))


def extract_client_ip(request: Request, *, trusted_proxies: str = "") -> str | None:
    """Resolve the caller address.

    ``X-Forwarded-For`` is only honoured when the socket peer is a trusted proxy;
    hops are read right to left and the first untrusted one is the client.
    """
    peer = canonical_ip(request.client.host if request.client is not None else None)
    if peer is None:
        return None
    proxies = parse_networks(trusted_proxies)
    forwarded = request.headers.get(FORWARDED_FOR_HEADER)
    if not forwarded or not _in_networks(peer, proxies):
        return str(peer)

    for hop in reversed(forwarded.split(",")):
        address = canonical_ip(hop)
        if address is None:
            break
        if not _in_networks(address, proxies):
            return str(address)
    return str(peer)


def is_valid_internal_token(*, expected_token: str, received_token: str | None) -> bool:
    if not expected_token or not received_token:
        return False
    return secrets.compare_digest(expected_token.encode(), received_token.encode())


def is_internal_request_authenticated(request: Request, *, expected_token: str) -> bool:
    return is_valid_internal_token(
        expected_token=expected_token,
        received_token=request.headers.get(INTERNAL_TOKEN_HEADER),
    )
