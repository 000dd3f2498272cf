"""Target validation: scheme allowlist and loopback/private host blocking.

Only the literal hostname is inspected. A public name that later resolves to
a private address (DNS rebinding) is not caught here. Redirect hops are
re-checked by the orchestrator through :func:`check_target`.
"""

from __future__ import annotations

import ipaddress
import re
import socket
from typing import Optional, Union
from urllib.parse import urlparse, urlunparse

from .errors import BlockedHost, InvalidUrl, UnsupportedScheme

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]

ALLOWED_SCHEMES = {"http", "https"}

BLOCKED_NAMES = ("localhost",)
BLOCKED_SUFFIXES = (".localhost", ".local")

PRIVATE_IPV4_NETWORKS = tuple(
    ipaddress.ip_network(block)
    for block in (
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "169.254.0.0/16",
        "127.0.0.0/8",
    )
)

PRIVATE_IPV6_NETWORKS = tuple(
    ipaddress.ip_network(block)
    for block in (
        "fc00::/7",
        "fe80::/10",
        "::1/128",
    )
)

_LEGACY_IPV4 = re.compile(r"^[0-9a-fx.]+$")


def _parse_ip(host: str) -> Optional[IPAddress]:
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        pass
    # Shorthand/hex/integer IPv4 forms ("127.1", "0x7f000001", "2130706433")
    # are accepted by the resolver, so treat them as the address they denote.
    if not _LEGACY_IPV4.match(host) or not any(ch.isdigit() for ch in host):
        return None
    try:
        return ipaddress.IPv4Address(socket.inet_aton(host))
    except OSError:
        return None


def is_private_ipv4(address: ipaddress.IPv4Address) -> bool:
    return any(address in network for network in PRIVATE_IPV4_NETWORKS)


def is_private_ipv6(address: ipaddress.IPv6Address) -> bool:
    if address.ipv4_mapped is not None:
        return is_private_ipv4(address.ipv4_mapped)
    return any(address in network for network in PRIVATE_IPV6_NETWORKS)


def is_blocked_host(hostname: str, allow_private: bool = False) -> bool:
    """Return True when ``hostname`` names a loopback, private or link-local target."""

    if allow_private:
        return False
    normalized = (hostname or "").strip().lower().strip("[]").rstrip(".")
    if not normalized:
        return False

    if normalized in BLOCKED_NAMES or normalized.endswith(BLOCKED_SUFFIXES):
        return True

    address = _parse_ip(normalized.split("%", 1)[0])
    if address is None:
        return False
    if isinstance(address, ipaddress.IPv4Address):
        return is_private_ipv4(address)
    return is_private_ipv6(address)


def normalize_target_url(raw: str) -> str:
    """Validate an absolute http(s) URL and return it in canonical form."""

    candidate = (raw or "").strip()
    try:
        parsed = urlparse(candidate)
        hostname = parsed.hostname
        _ = parsed.port  # raises ValueError on a malformed port
    except ValueError as exc:
        raise InvalidUrl("Invalid url") from exc
    scheme = parsed.scheme.lower()
    if not scheme:
        raise InvalidUrl("Invalid url")
    if scheme not in ALLOWED_SCHEMES:
        raise UnsupportedScheme("Only http/https URLs are allowed")
    if not hostname:
        raise InvalidUrl("Invalid url")
    return urlunparse(parsed._replace(scheme=scheme, path=parsed.path or "/"))


def check_target(raw: str, allow_private: bool = False) -> str:
    """Normalize ``raw`` and raise :class:`BlockedHost` for internal targets."""

    url = normalize_target_url(raw)
    hostname = urlparse(url).hostname or ""
    if is_blocked_host(hostname, allow_private):
        raise BlockedHost(hostname)
    return url


__all__ = [
    "ALLOWED_SCHEMES",
    "is_private_ipv4",
    "is_private_ipv6",
    "is_blocked_host",
    "normalize_target_url",
    "check_target",
]
