"""
Unit tests for request capture from API Gateway events
"""

import base64
import dataclasses

import pytest

from models.relay import IncomingRequest, ValidationOutcome, normalize_headers


def make_event(**overrides):
    event = {
        "httpMethod": "POST",
        "headers": {"Content-Type": "application/json", "Content-Length": "17"},
        "queryStringParameters": None,
        "body": '{"event": "paid"}',
        "isBase64Encoded": False,
        "requestContext": {"identity": {"sourceIp": "8.8.8.8"}},
    }
    event.update(overrides)
    return event


def test_capture_basic_event():
    request = IncomingRequest.from_api_gateway_event(make_event())

    assert request.method == "POST"
    assert request.body == b'{"event": "paid"}'
    assert request.content_length == 17
    assert request.content_type == "application/json"
    assert request.client_ip == "8.8.8.8"
    assert request.remote_addr == "8.8.8.8"
    assert dict(request.query) == {}


def test_base64_body_is_decoded_to_exact_bytes():
    """Test that binary bodies survive byte-for-byte."""
    raw = b"\x00\xffbinary\r\n"
    request = IncomingRequest.from_api_gateway_event(
        make_event(body=base64.b64encode(raw).decode(), isBase64Encoded=True)
    )

    assert request.body == raw


def test_headers_are_case_insensitive_last_write_wins():
    """Test lower-casing and multi-value precedence."""
    request = IncomingRequest.from_api_gateway_event(
        make_event(
            headers={"X-Request-Id": "single"},
            multiValueHeaders={"x-request-id": ["first", "second"], "X-Other": ["a", "b"]},
        )
    )

    assert request.header("X-REQUEST-ID") == "single"
    assert request.header("x-other") == "b"


def test_normalize_headers_later_keys_win():
    assert normalize_headers({"X-Signature": "one", "x-signature": "two"}) == {
        "x-signature": "two"
    }


@pytest.mark.parametrize("declared", [None, "abc", "-5"])
def test_content_length_falls_back_to_body_length(declared):
    headers = {"Content-Type": "application/json"}
    if declared is not None:
        headers["Content-Length"] = declared

    request = IncomingRequest.from_api_gateway_event(make_event(headers=headers))

    assert request.content_length == len(b'{"event": "paid"}')


def test_client_ip_resolved_from_proxy_headers():
    request = IncomingRequest.from_api_gateway_event(
        make_event(
            headers={"X-Forwarded-For": "1.1.1.1, 10.0.0.2"},
            requestContext={"identity": {"sourceIp": "10.0.0.9"}},
        )
    )

    assert request.client_ip == "1.1.1.1"
    assert request.remote_addr == "10.0.0.9"


def test_missing_fields_have_safe_defaults():
    request = IncomingRequest.from_api_gateway_event({})

    assert request.method == ""
    assert request.body == b""
    assert request.content_length == 0
    assert request.client_ip == "unknown"
    assert request.user_agent == "unknown"


def test_request_is_immutable():
    request = IncomingRequest.from_api_gateway_event(make_event())

    with pytest.raises(dataclasses.FrozenInstanceError):
        request.body = b"changed"
    with pytest.raises(TypeError):
        request.headers["x-new"] = "value"


def test_validation_outcome():
    outcome = ValidationOutcome()
    assert outcome.accepted is True

    outcome.add("Invalid content type")
    assert outcome.accepted is False
    assert outcome.reasons == ["Invalid content type"]
