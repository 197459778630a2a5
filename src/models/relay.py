"""
Relay Data Model

Typed structures passed between the request gate, the forwarding engine
and the response mapper.
"""

import base64
import binascii
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from utils.exceptions import DownstreamError
from utils.network import resolve_client_ip


class SignatureHeader(str, Enum):
    """Recognized inbound signature headers, in priority order."""

    X_SIGNATURE = "x-signature"
    X_HUB_SIGNATURE = "x-hub-signature"
    X_HOOK_SIGNATURE = "x-hook-signature"
    SIGNATURE = "signature"


class AttemptOutcome(str, Enum):
    """Classification of a single forwarding attempt."""

    SUCCESS = "success"
    CLIENT_ERROR = "clientError"
    SERVER_ERROR = "serverError"
    TRANSPORT_ERROR = "transportError"


class ForwardState(str, Enum):
    """States of the forwarding state machine."""

    PENDING = "pending"
    ATTEMPTING = "attempting"
    SUCCESS = "success"
    RETRYING = "retrying"
    FAILED = "failed"


def normalize_headers(
    headers: Optional[Mapping[str, Any]] = None,
    multi_value_headers: Optional[Mapping[str, List[Any]]] = None,
) -> Dict[str, str]:
    """
    Lower-case header names, keeping the last value written for each.

    API Gateway may deliver both ``multiValueHeaders`` and ``headers``;
    multi-value entries are applied first so single-value headers win.
    """
    normalized: Dict[str, str] = {}

    for name, values in (multi_value_headers or {}).items():
        if values:
            normalized[name.lower()] = str(values[-1])

    for name, value in (headers or {}).items():
        if value is not None:
            normalized[name.lower()] = str(value)

    return normalized


@dataclass(frozen=True)
class IncomingRequest:
    """Inbound webhook request, captured once and never mutated."""

    method: str
    headers: Mapping[str, str]
    body: bytes
    content_length: int
    client_ip: str
    remote_addr: str = "unknown"
    query: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(
            self, "headers", MappingProxyType(normalize_headers(self.headers))
        )
        object.__setattr__(self, "query", MappingProxyType(dict(self.query or {})))

    @property
    def content_type(self) -> str:
        return self.header("content-type", "")

    @property
    def user_agent(self) -> str:
        return self.header("user-agent", "unknown")

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    @classmethod
    def from_api_gateway_event(cls, event: Dict[str, Any]) -> "IncomingRequest":
        """
        Capture an API Gateway proxy event.

        Args:
            event: API Gateway (REST proxy) event

        Returns:
            IncomingRequest with the raw body bytes exactly as received
        """
        headers = normalize_headers(
            event.get("headers"), event.get("multiValueHeaders")
        )

        raw_body = event.get("body") or ""
        if event.get("isBase64Encoded"):
            try:
                body = base64.b64decode(raw_body)
            except (binascii.Error, ValueError):
                body = raw_body.encode("utf-8")
        elif isinstance(raw_body, bytes):
            body = raw_body
        else:
            body = raw_body.encode("utf-8")

        try:
            content_length = int(headers.get("content-length", ""))
            if content_length < 0:
                raise ValueError(content_length)
        except ValueError:
            content_length = len(body)

        identity = (event.get("requestContext") or {}).get("identity") or {}
        remote_addr = identity.get("sourceIp") or "unknown"

        return cls(
            method=(event.get("httpMethod") or "").upper(),
            headers=headers,
            body=body,
            content_length=content_length,
            client_ip=resolve_client_ip(headers, remote_addr),
            remote_addr=remote_addr,
            query=event.get("queryStringParameters") or {},
        )


@dataclass
class ValidationOutcome:
    """Ordered validation failure reasons; no reasons means accepted."""

    reasons: List[str] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return not self.reasons

    def add(self, reason: str) -> None:
        self.reasons.append(reason)


@dataclass(frozen=True)
class SignatureContext:
    """Everything a verification strategy needs to authenticate a payload."""

    payload: bytes
    provided_signature: Optional[str]
    secret: Optional[str] = None
    public_key: Optional[str] = None


@dataclass
class ForwardAttempt:
    """Outcome of one outbound delivery attempt."""

    index: int
    outcome: AttemptOutcome
    status_code: Optional[int] = None
    body: str = ""
    elapsed: float = 0.0
    error: Optional[DownstreamError] = None

    @property
    def retryable(self) -> bool:
        return self.error is not None and self.error.retryable


@dataclass
class ForwardResult:
    """Terminal result of a forwarding run."""

    status_code: int
    body: str
    attempts: int
    state: ForwardState
    last_error: Optional[str] = None
    history: List[ForwardAttempt] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status_code < 400
