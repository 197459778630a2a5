"""
Unit tests for log sanitization
"""

import json

from utils.log_sanitizer import MASK, mask_sensitive_data, sanitize_headers, truncate_body


def test_sanitize_headers_masks_credentials():
    headers = {
        "Authorization": "Bearer abc",
        "X-Hub-Signature": "sha256=deadbeef",
        "Content-Type": "application/json",
    }

    sanitized = sanitize_headers(headers)

    assert sanitized["Authorization"] == MASK
    assert sanitized["X-Hub-Signature"] == MASK
    assert sanitized["Content-Type"] == "application/json"
    assert headers["Authorization"] == "Bearer abc"


def test_truncate_body():
    assert truncate_body(None) == ""
    assert truncate_body(b"short") == "short"
    assert truncate_body("x" * 20, max_length=10) == "x" * 10 + "... [truncated]"


def test_truncate_body_masks_nested_json_secrets():
    """Test that sensitive JSON fields are masked at any depth."""
    body = b'{"event":"x","client_secret":"s3cr3t","card":{"token":"tok_live_1","last4":"4242"}}'

    logged = truncate_body(body)

    assert "s3cr3t" not in logged
    assert "tok_live_1" not in logged
    assert json.loads(logged) == {
        "event": "x",
        "client_secret": MASK,
        "card": {"token": MASK, "last4": "4242"},
    }


def test_mask_sensitive_data_walks_lists():
    data = {"items": [{"API_KEY": "k1", "name": "a"}], "Password": "p", "amount": 10}

    assert mask_sensitive_data(data) == {
        "items": [{"API_KEY": MASK, "name": "a"}],
        "Password": MASK,
        "amount": 10,
    }
    assert data["Password"] == "p"


def test_truncate_body_leaves_non_json_text():
    assert truncate_body("upstream unavailable") == "upstream unavailable"
