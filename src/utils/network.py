"""
Network Utilities

Client IP resolution behind proxies and IP allow-list matching.
"""

import ipaddress
from typing import Iterable, Mapping, Optional

# Proxy headers consulted for the original client address, most specific first.
CLIENT_IP_HEADERS = (
    "cf-connecting-ip",
    "x-forwarded-for",
    "x-forwarded",
    "x-cluster-client-ip",
    "forwarded-for",
    "forwarded",
    "client-ip",
)


def parse_ip(value: Optional[str]):
    """Parse an IP address, returning None when the value is not one."""
    if not value:
        return None
    try:
        return ipaddress.ip_address(value.strip())
    except ValueError:
        return None


def is_public_ip(value: str) -> bool:
    """
    Check that a value is a valid, publicly routable IP address.

    Private, reserved, loopback, link-local, multicast and unspecified
    addresses are rejected.
    """
    ip = parse_ip(value)
    if ip is None:
        return False
    return not (
        ip.is_private
        or ip.is_reserved
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_multicast
        or ip.is_unspecified
    )


def resolve_client_ip(headers: Mapping[str, str], remote_addr: Optional[str]) -> str:
    """
    Resolve the originating client IP address.

    Proxy headers are scanned in order of preference, then the connection
    address. A comma-separated header contributes only its first element.
    Candidates must be public addresses; when none qualifies the raw
    connection address is returned as-is.

    Args:
        headers: Request headers with lower-cased names
        remote_addr: Address of the direct peer

    Returns:
        Client IP address string, or "unknown"
    """
    candidates = [headers.get(name) for name in CLIENT_IP_HEADERS]
    candidates.append(remote_addr)

    for value in candidates:
        if not value:
            continue
        candidate = value.split(",", 1)[0].strip()
        if is_public_ip(candidate):
            return candidate

    return remote_addr or "unknown"


def ip_in_cidr(ip: str, cidr: str) -> bool:
    """
    Check whether an address lies inside a CIDR range.

    IPv4 compares the masked 32-bit integer forms. IPv6 compares whole
    prefix bytes, then the leading bits of the partial byte.

    Args:
        ip: Address to test
        cidr: Range in address/prefix notation

    Returns:
        True if the address is inside the range
    """
    if "/" not in cidr:
        return ip == cidr

    subnet_text, _, bits_text = cidr.partition("/")
    address = parse_ip(ip)
    subnet = parse_ip(subnet_text)
    if address is None or subnet is None or address.version != subnet.version:
        return False

    try:
        bits = int(bits_text)
    except ValueError:
        return False

    if address.version == 4:
        if not 0 <= bits <= 32:
            return False
        mask = (0xFFFFFFFF << (32 - bits)) & 0xFFFFFFFF
        return (int(address) & mask) == (int(subnet) & mask)

    if not 0 <= bits <= 128:
        return False

    ip_bytes = address.packed
    subnet_bytes = subnet.packed
    full_bytes, remaining_bits = divmod(bits, 8)

    if ip_bytes[:full_bytes] != subnet_bytes[:full_bytes]:
        return False

    if remaining_bits and full_bytes < 16:
        mask = (0xFF << (8 - remaining_bits)) & 0xFF
        if (ip_bytes[full_bytes] & mask) != (subnet_bytes[full_bytes] & mask):
            return False

    return True


def is_ip_allowed(ip: str, allow_list: Iterable[str]) -> bool:
    """
    Match an address against an allow-list of exact addresses and CIDR ranges.

    An empty allow-list means unrestricted.
    """
    entries = [entry.strip() for entry in allow_list if entry and entry.strip()]
    if not entries:
        return True

    for entry in entries:
        if ip == entry:
            return True
        if "/" in entry and ip_in_cidr(ip, entry):
            return True

    return False
