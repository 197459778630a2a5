"""
Response Builder Utility

Provides consistent API Gateway response formatting and maps relay
outcomes onto the caller-facing envelope:

    {"success": bool, "message" | "error": str, "timestamp": ISO-8601}
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from models.relay import ForwardResult, ValidationOutcome

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
    "Access-Control-Allow-Methods": "POST,GET,OPTIONS",
}


def utc_timestamp() -> str:
    """Current UTC time in ISO-8601 format."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def build_response(
    status_code: int, body: Optional[Dict[str, Any]], headers: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    """
    Build standardized API Gateway response.

    Args:
        status_code: HTTP status code
        body: Response body dictionary, or None for an empty body
        headers: Optional additional headers

    Returns:
        API Gateway response dictionary
    """
    response_headers = dict(DEFAULT_HEADERS)

    if headers:
        response_headers.update(headers)

    return {
        "statusCode": status_code,
        "headers": response_headers,
        "body": json.dumps(body, default=str) if body is not None else "",
    }


def build_error_response(status_code: int, error_message: str) -> Dict[str, Any]:
    """
    Build standardized error response.

    Args:
        status_code: HTTP status code
        error_message: Generic, caller-safe error message

    Returns:
        API Gateway error response dictionary
    """
    return build_response(
        status_code,
        {"success": False, "error": error_message, "timestamp": utc_timestamp()},
    )


def build_success_response(message: str) -> Dict[str, Any]:
    """
    Build standardized success response.

    Args:
        message: Success message

    Returns:
        API Gateway success response dictionary
    """
    return build_response(
        200, {"success": True, "message": message, "timestamp": utc_timestamp()}
    )


def validation_failure_response(outcome: ValidationOutcome) -> Dict[str, Any]:
    """Rejected request; reasons are logged by the gate, never returned."""
    return build_error_response(400, "Invalid request")


def forward_result_response(result: ForwardResult) -> Dict[str, Any]:
    """Map a forwarding result; the downstream status and body are not surfaced."""
    if result.succeeded:
        return build_success_response("Webhook forwarded successfully")
    return build_error_response(502, "Failed to forward webhook")


def internal_error_response() -> Dict[str, Any]:
    return build_error_response(500, "Internal server error")


def unavailable_response() -> Dict[str, Any]:
    """Configuration could not be loaded; the relay refuses to serve."""
    return build_error_response(500, "Service temporarily unavailable")
