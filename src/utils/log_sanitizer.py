"""
Log Sanitization Utilities

Masks credentials and truncates bodies before they reach the logs.
"""

import json
from typing import Any, Dict, Mapping, Union

from models.relay import SignatureHeader

MASK = "***masked***"
MAX_BODY_LENGTH = 1000

SENSITIVE_HEADERS = frozenset(
    ["authorization", "cookie", "set-cookie", "x-api-key"]
    + [header.value for header in SignatureHeader]
)

# Substrings marking a JSON field as sensitive, matched case-insensitively.
SENSITIVE_KEYS = ("token", "password", "secret", "key", "authorization")


def sanitize_headers(headers: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of the headers with credential values masked."""
    return {
        name: MASK if name.lower() in SENSITIVE_HEADERS else value
        for name, value in headers.items()
    }


def is_sensitive_key(key: Any) -> bool:
    lowered = str(key).lower()
    return any(marker in lowered for marker in SENSITIVE_KEYS)


def mask_sensitive_data(data: Any) -> Any:
    """
    Mask sensitive fields in decoded JSON at any depth.

    Args:
        data: Decoded JSON value

    Returns:
        Copy of the value with every sensitive field replaced by the mask
    """
    if isinstance(data, dict):
        return {
            key: MASK if is_sensitive_key(key) else mask_sensitive_data(value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [mask_sensitive_data(item) for item in data]
    return data


def truncate_body(body: Union[str, bytes, None], max_length: int = MAX_BODY_LENGTH) -> str:
    """Decode, mask and shorten a body for logging."""
    if body is None:
        return ""
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")

    try:
        decoded = json.loads(body)
    except ValueError:
        decoded = None
    if isinstance(decoded, (dict, list)):
        body = json.dumps(mask_sensitive_data(decoded))

    if len(body) > max_length:
        return body[:max_length] + "... [truncated]"
    return body
