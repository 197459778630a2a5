"""
Unit tests for client IP resolution and CIDR matching
"""

import pytest

from utils.network import ip_in_cidr, is_ip_allowed, is_public_ip, resolve_client_ip


def test_ipv4_cidr_containment():
    """Test that addresses inside and outside a /24 are told apart."""
    assert is_ip_allowed("192.168.1.5", ["192.168.1.0/24"]) is True
    assert is_ip_allowed("192.168.2.5", ["192.168.1.0/24"]) is False


@pytest.mark.parametrize(
    "ip, cidr, expected",
    [
        ("10.1.2.3", "10.0.0.0/8", True),
        ("11.1.2.3", "10.0.0.0/8", False),
        ("203.0.113.77", "203.0.113.77/32", True),
        ("203.0.113.78", "203.0.113.77/32", False),
        ("8.8.8.8", "0.0.0.0/0", True),
        ("172.31.255.255", "172.16.0.0/12", True),
        ("172.32.0.1", "172.16.0.0/12", False),
    ],
)
def test_ipv4_ranges(ip, cidr, expected):
    """Test IPv4 masks of assorted prefix lengths."""
    assert ip_in_cidr(ip, cidr) is expected


@pytest.mark.parametrize(
    "ip, cidr, expected",
    [
        ("2001:db8::1", "2001:db8::/32", True),
        ("2001:db9::1", "2001:db8::/32", False),
        ("2001:db8:abcd:12ff::1", "2001:db8:abcd:1200::/56", True),
        ("2001:db8:abcd:1300::1", "2001:db8:abcd:1200::/56", False),
        # /52 leaves a partial byte: 0x10 and 0x1f share their top four bits
        ("2001:db8:abcd:1f00::1", "2001:db8:abcd:1000::/52", True),
        ("2001:db8:abcd:2f00::1", "2001:db8:abcd:1000::/52", False),
        ("::1", "::1/128", True),
        ("2001:db8::1", "::/0", True),
    ],
)
def test_ipv6_ranges(ip, cidr, expected):
    """Test IPv6 whole-byte and partial-byte prefixes."""
    assert ip_in_cidr(ip, cidr) is expected


@pytest.mark.parametrize(
    "ip, cidr",
    [
        ("192.168.1.5", "2001:db8::/32"),
        ("2001:db8::1", "192.168.1.0/24"),
        ("not-an-ip", "192.168.1.0/24"),
        ("192.168.1.5", "192.168.1.0/33"),
        ("192.168.1.5", "192.168.1.0/abc"),
        ("192.168.1.5", "garbage/24"),
    ],
)
def test_invalid_or_mismatched_ranges_never_match(ip, cidr):
    """Test that malformed input and mixed families are rejected."""
    assert ip_in_cidr(ip, cidr) is False


def test_allow_list_exact_match_and_whitespace():
    """Test exact entries and tolerance for spacing in the list."""
    allow_list = [" 198.51.100.7 ", "10.0.0.0/8"]

    assert is_ip_allowed("198.51.100.7", allow_list) is True
    assert is_ip_allowed("10.20.30.40", allow_list) is True
    assert is_ip_allowed("198.51.100.8", allow_list) is False


def test_empty_allow_list_is_unrestricted():
    """Test that no configured entries means every address is allowed."""
    assert is_ip_allowed("198.51.100.8", []) is True
    assert is_ip_allowed("198.51.100.8", ["", "  "]) is True


def test_is_public_ip():
    """Test private and reserved address rejection."""
    assert is_public_ip("203.0.113.1") is False  # documentation range is reserved
    assert is_public_ip("8.8.8.8") is True
    assert is_public_ip("10.0.0.1") is False
    assert is_public_ip("127.0.0.1") is False
    assert is_public_ip("169.254.1.1") is False
    assert is_public_ip("2606:4700:4700::1111") is True
    assert is_public_ip("fd00::1") is False
    assert is_public_ip("nonsense") is False


def test_resolve_prefers_proxy_header_order():
    """Test that the Cloudflare header beats X-Forwarded-For."""
    headers = {"cf-connecting-ip": "1.1.1.1", "x-forwarded-for": "8.8.8.8"}

    assert resolve_client_ip(headers, "10.0.0.5") == "1.1.1.1"


def test_resolve_takes_first_element_of_forwarded_chain():
    """Test comma-separated proxy chains."""
    headers = {"x-forwarded-for": "8.8.4.4, 10.0.0.1, 172.16.0.1"}

    assert resolve_client_ip(headers, "10.0.0.5") == "8.8.4.4"


def test_resolve_skips_private_header_values():
    """Test that private addresses in headers are ignored."""
    headers = {"x-forwarded-for": "10.0.0.1", "x-cluster-client-ip": "9.9.9.9"}

    assert resolve_client_ip(headers, "10.0.0.5") == "9.9.9.9"


def test_resolve_falls_back_to_connection_address():
    """Test the unconditional fallback to the raw connection address."""
    assert resolve_client_ip({"x-forwarded-for": "192.168.0.1"}, "10.0.0.5") == "10.0.0.5"
    assert resolve_client_ip({}, "8.8.8.8") == "8.8.8.8"
    assert resolve_client_ip({}, None) == "unknown"
