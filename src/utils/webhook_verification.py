"""
Webhook Signature Verification

Utilities for verifying inbound webhook signatures from the payment provider.
Ensures webhook payloads are authentic and haven't been tampered with.

Two credential types are supported and either one is sufficient:

- a public key (RSA, EC or DSA) checked against a base64 or hex signature
- a shared secret checked against an HMAC hex digest, bare or prefixed
  with the algorithm name (``sha256=<hex>``)

Signatures are always computed over the raw request body bytes.
"""

import base64
import binascii
import hashlib
import hmac
import re
import textwrap
from abc import ABC, abstractmethod
from typing import List, Mapping, Optional

from aws_lambda_powertools import Logger
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ec, padding, rsa

from models.relay import SignatureContext, SignatureHeader

logger = Logger(child=True)

PEM_HEADER = "-----BEGIN PUBLIC KEY-----"
PEM_FOOTER = "-----END PUBLIC KEY-----"

# "sha256=<signature>"; the remainder may not start with "=" so base64
# padding is never mistaken for a prefix.
ALGORITHM_PREFIX = re.compile(r"^([A-Za-z][A-Za-z0-9-]*)=([^=].*)$", re.DOTALL)


def extract_signature(headers: Mapping[str, str]) -> Optional[str]:
    """
    Extract webhook signature from request headers.

    Recognized headers are scanned in priority order and the first
    non-empty value wins. Lookups are case-insensitive.

    Args:
        headers: Request headers dictionary

    Returns:
        Signature string or None if not found
    """
    lowered = {name.lower(): value for name, value in headers.items()}

    for header in SignatureHeader:
        value = lowered.get(header.value)
        if value and value.strip():
            return value.strip()

    return None


def strip_algorithm_prefix(signature: str) -> str:
    """Remove an optional ``algorithm=`` prefix from a signature."""
    match = ALGORITHM_PREFIX.match(signature)
    if match:
        return match.group(2)
    return signature


def decode_signature(signature: str) -> List[bytes]:
    """
    Decode a signature string to raw bytes.

    Base64 is tried first, hexadecimal second. A hex digest is also valid
    base64 text, so both decodings are returned when both apply.

    Returns:
        Candidate signature byte strings in preference order (possibly empty)
    """
    value = strip_algorithm_prefix(signature.strip())
    candidates = []

    try:
        decoded = base64.b64decode(value, validate=True)
        if decoded:
            candidates.append(decoded)
    except (binascii.Error, ValueError):
        pass

    try:
        decoded = bytes.fromhex(value)
        if decoded and decoded not in candidates:
            candidates.append(decoded)
    except ValueError:
        pass

    return candidates


def normalize_public_key(public_key: str) -> str:
    """
    Wrap bare base64 key material in a PEM envelope.

    Keys that already carry PEM armor are returned unchanged.
    """
    key = public_key.strip()
    if "-----BEGIN" in key:
        return key

    body = "".join(key.split())
    lines = textwrap.wrap(body, 64)
    return "\n".join([PEM_HEADER, *lines, PEM_FOOTER])


class VerificationStrategy(ABC):
    """One way of authenticating a payload."""

    name = "abstract"

    @abstractmethod
    def applies(self, context: SignatureContext) -> bool:
        """Whether the credential this strategy needs is configured."""

    @abstractmethod
    def verify(self, context: SignatureContext) -> bool:
        """Return True if the provided signature authenticates the payload."""


class PublicKeyStrategy(VerificationStrategy):
    """Asymmetric verification against a configured public key."""

    name = "public_key"
    digests = (hashes.SHA256, hashes.SHA1, hashes.SHA512)

    def applies(self, context: SignatureContext) -> bool:
        return bool(context.public_key)

    def verify(self, context: SignatureContext) -> bool:
        signatures = decode_signature(context.provided_signature)
        if not signatures:
            logger.debug("Signature could not be decoded as base64 or hex")
            return False

        try:
            key = serialization.load_pem_public_key(
                normalize_public_key(context.public_key).encode("ascii")
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            logger.error(f"Configured public key could not be loaded: {str(e)}")
            return False

        for signature in signatures:
            for digest in self.digests:
                if self._verify_with(key, signature, context.payload, digest()):
                    logger.debug(
                        "Public key signature verified", extra={"algorithm": digest.name}
                    )
                    return True

        return False

    @staticmethod
    def _verify_with(key, signature: bytes, payload: bytes, algorithm) -> bool:
        try:
            if isinstance(key, rsa.RSAPublicKey):
                key.verify(signature, payload, padding.PKCS1v15(), algorithm)
            elif isinstance(key, ec.EllipticCurvePublicKey):
                key.verify(signature, payload, ec.ECDSA(algorithm))
            elif isinstance(key, dsa.DSAPublicKey):
                key.verify(signature, payload, algorithm)
            else:
                logger.error(f"Unsupported public key type: {type(key).__name__}")
                return False
        except (InvalidSignature, ValueError, UnsupportedAlgorithm):
            return False
        return True


class HmacStrategy(VerificationStrategy):
    """Shared-secret verification using an HMAC hex digest."""

    name = "shared_secret"
    algorithms = ("sha256", "sha1", "md5")

    def applies(self, context: SignatureContext) -> bool:
        return bool(context.secret)

    def verify(self, context: SignatureContext) -> bool:
        provided = context.provided_signature.encode("utf-8")
        secret = context.secret.encode("utf-8")

        for algorithm in self.algorithms:
            expected = hmac.new(
                secret, context.payload, getattr(hashlib, algorithm)
            ).hexdigest()
            prefixed = f"{algorithm}={expected}"

            # Use constant-time comparison to prevent timing attacks
            if hmac.compare_digest(provided, expected.encode("ascii")) or hmac.compare_digest(
                provided, prefixed.encode("ascii")
            ):
                logger.debug("HMAC signature verified", extra={"algorithm": algorithm})
                return True

        return False


class SignatureVerifier:
    """
    Authenticates raw webhook payloads.

    Strategies are tried in order (public key first, shared secret second)
    and the first acceptance wins. Rejections are uniform: callers only
    ever see True or False.
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        public_key: Optional[str] = None,
        strategies: Optional[List[VerificationStrategy]] = None,
    ):
        self.secret = secret or None
        self.public_key = public_key or None
        self.strategies = strategies or [PublicKeyStrategy(), HmacStrategy()]

    @property
    def enabled(self) -> bool:
        return bool(self.secret or self.public_key)

    def verify(self, payload: bytes, signature: Optional[str]) -> bool:
        """
        Verify a payload signature.

        Args:
            payload: Raw request body bytes, exactly as received
            signature: Signature value taken from the request headers

        Returns:
            True if any configured credential authenticates the payload
        """
        if not self.enabled:
            return True

        if not signature:
            logger.warning("Signature verification enabled but no signature provided")
            return False

        context = SignatureContext(
            payload=payload,
            provided_signature=signature,
            secret=self.secret,
            public_key=self.public_key,
        )

        attempted = []
        for strategy in self.strategies:
            if not strategy.applies(context):
                continue
            if strategy.verify(context):
                if attempted:
                    logger.debug(
                        "Signature accepted by fallback strategy",
                        extra={"strategy": strategy.name, "rejected_by": attempted},
                    )
                return True
            attempted.append(strategy.name)

        logger.warning(
            "Signature verification failed",
            extra={"strategies": attempted, "signature_length": len(signature)},
        )
        return False


def verify_webhook_signature(
    payload: bytes,
    signature: Optional[str],
    secret: Optional[str] = None,
    public_key: Optional[str] = None,
) -> bool:
    """
    Verify a webhook signature against a shared secret and/or public key.

    Args:
        payload: Raw request body bytes
        signature: Signature from the request headers (e.g., "sha256=abc123...")
        secret: Shared webhook secret, if configured
        public_key: PEM or bare base64 public key, if configured

    Returns:
        True if signature is valid (or no credential is configured), False otherwise

    Example:
        >>> payload = b'{"event": "purchase.paid"}'
        >>> signature = "sha256=a1b2c3..."
        >>> is_valid = verify_webhook_signature(payload, signature, secret="my-shared-secret")
    """
    return SignatureVerifier(secret=secret, public_key=public_key).verify(payload, signature)
