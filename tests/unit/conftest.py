"""
Shared fixtures for unit tests
"""

import os
from dataclasses import dataclass
from unittest.mock import Mock

import pytest

# Must be set before handler modules create their Tracer/Metrics/Logger
os.environ.setdefault("POWERTOOLS_TRACE_DISABLED", "1")
os.environ.setdefault("POWERTOOLS_SERVICE_NAME", "webhook-relay")
os.environ.setdefault("POWERTOOLS_METRICS_NAMESPACE", "WebhookRelay")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")

from config.settings import Settings  # noqa: E402
from models.relay import IncomingRequest  # noqa: E402

RELAY_ENV_VARS = [
    "DOWNSTREAM_URL",
    "BEARER_TOKEN",
    "BEARER_TOKEN_SECRET",
    "SHARED_SECRET",
    "SHARED_SECRET_NAME",
    "PUBLIC_KEY",
    "SIGNATURE_VERIFICATION_ENABLED",
    "IP_ALLOW_LIST",
    "MAX_PAYLOAD_SIZE",
    "RETRY_ATTEMPTS",
    "RETRY_BASE_DELAY",
    "REQUEST_TIMEOUT",
    "CONNECT_TIMEOUT",
    "TLS_VERIFY",
    "LOCAL_DEV",
    "ENVIRONMENT",
    "LOG_LEVEL",
]


@dataclass
class LambdaContext:
    function_name: str = "webhook-relay-test"
    memory_limit_in_mb: int = 128
    invoked_function_arn: str = "arn:aws:lambda:us-east-1:123456789012:function:webhook-relay-test"
    aws_request_id: str = "52fdfc07-2182-154f-163f-5f0f9a621d72"


@pytest.fixture
def lambda_context():
    return LambdaContext()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep relay settings from the developer's shell out of the tests."""
    for name in RELAY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings():
    return Settings(
        downstream_url="https://automation.example.com/hooks/abc123",
        bearer_token="test-bearer-token",
        retry_attempts=3,
        retry_base_delay=1.0,
        _env_file=None,
    )


def make_request(
    body: bytes = b'{"event": "purchase.paid", "id": "pur_123"}',
    method: str = "POST",
    headers: dict = None,
    client_ip: str = "203.0.113.10",
    content_length: int = None,
) -> IncomingRequest:
    """Build an IncomingRequest with sensible webhook defaults."""
    request_headers = {"Content-Type": "application/json", "User-Agent": "Provider-Webhooks/2.0"}
    request_headers.update(headers or {})
    return IncomingRequest(
        method=method,
        headers=request_headers,
        body=body,
        content_length=len(body) if content_length is None else content_length,
        client_ip=client_ip,
        remote_addr=client_ip,
    )


def make_response(status_code: int, text: str = "") -> Mock:
    response = Mock()
    response.status_code = status_code
    response.text = text
    return response


@pytest.fixture
def mock_session():
    """Create a mock requests session."""
    session = Mock()
    session.headers = {}
    session.post.return_value = make_response(200, '{"ok": true}')
    return session
