"""
Request Gate

Validates the shape of inbound webhook requests before anything is relayed:
method, content type, declared size, source IP and, when enabled, the
webhook signature. Every check runs so the full set of reasons is logged.
"""

import json
from typing import Optional

from aws_lambda_powertools import Logger

from config.settings import Settings
from models.relay import IncomingRequest, ValidationOutcome
from utils.exceptions import ValidationError
from utils.network import is_ip_allowed
from utils.webhook_verification import SignatureVerifier, extract_signature

logger = Logger(child=True)

ALLOWED_CONTENT_TYPES = (
    "application/json",
    "application/x-www-form-urlencoded",
    "multipart/form-data",
)


def is_valid_content_type(content_type: str) -> bool:
    """Prefix-match the media type, ignoring parameters after ';'."""
    media_type = content_type.split(";", 1)[0].strip().lower()
    return any(media_type.startswith(allowed) for allowed in ALLOWED_CONTENT_TYPES)


class RequestGate:
    """Validates inbound requests against the relay settings."""

    def __init__(self, settings: Settings, verifier: Optional[SignatureVerifier] = None):
        self.settings = settings
        self.verifier = verifier or SignatureVerifier(
            secret=settings.shared_secret, public_key=settings.public_key
        )

    def validate(self, request: IncomingRequest) -> ValidationOutcome:
        """
        Run every validation check against a request.

        Args:
            request: Captured inbound request

        Returns:
            ValidationOutcome; accepted when no reasons were recorded
        """
        outcome = ValidationOutcome()

        if request.method != "POST":
            outcome.add("Only POST requests are allowed")

        if not is_valid_content_type(request.content_type):
            outcome.add("Invalid content type")

        max_size = self.settings.max_payload_size
        if request.content_length > max_size:
            outcome.add(f"Payload too large: {request.content_length} bytes (max: {max_size})")

        if not is_ip_allowed(request.client_ip, self.settings.allowed_ips):
            logger.warning(
                "Request from unauthorized IP",
                extra={"client_ip": request.client_ip, "allowed_ips": self.settings.allowed_ips},
            )
            outcome.add("Request from unauthorized IP")

        if self.settings.signature_verification_active:
            signature = extract_signature(request.headers)
            if not self.verifier.verify(request.body, signature):
                outcome.add("Invalid webhook signature")

        if not outcome.accepted:
            logger.warning(
                "Request validation failed",
                extra={
                    "errors": outcome.reasons,
                    "remote_ip": request.client_ip,
                    "user_agent": request.user_agent,
                },
            )

        return outcome

    def read_payload(self, request: IncomingRequest) -> bytes:
        """
        Return the raw payload of an accepted request.

        Raises:
            ValidationError: If the payload is empty, or declared as JSON but malformed
        """
        if not request.body:
            raise ValidationError("Empty request payload", reasons=["Empty request payload"])

        if request.content_type.lower().startswith("application/json"):
            try:
                json.loads(request.body)
            except (ValueError, UnicodeDecodeError) as e:
                raise ValidationError(
                    f"Invalid JSON payload: {str(e)}", reasons=["Invalid JSON payload"]
                )

        return request.body
