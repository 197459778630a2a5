"""
Custom Exception Classes

Defines custom exceptions for the webhook relay.
Provides structured error handling across the application.
"""


class RelayError(Exception):
    """Base exception for relay errors."""

    def __init__(self, message: str, details: dict = None):
        """
        Initialize relay error.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(RelayError):
    """Exception raised for malformed inbound requests (HTTP 400, never retried)."""

    def __init__(self, message: str, reasons: list = None, details: dict = None):
        """
        Initialize validation error.

        Args:
            message: Error message
            reasons: Individual validation failure reasons
            details: Additional error details
        """
        super().__init__(message, details)
        self.reasons = list(reasons or [])


class DownstreamError(RelayError):
    """Base exception for failures talking to the downstream endpoint."""

    retryable = False

    def __init__(self, message: str, status_code: int = None, details: dict = None):
        """
        Initialize downstream error.

        Args:
            message: Error message
            status_code: HTTP status code, if a response was received
            details: Additional error details
        """
        super().__init__(message, details)
        self.status_code = status_code


class TransportError(DownstreamError):
    """No response was obtained from the downstream endpoint."""

    retryable = True


class DownstreamServerError(DownstreamError):
    """Downstream answered with a 5xx status."""

    retryable = True


class DownstreamClientError(DownstreamError):
    """Downstream answered with a 4xx status."""

    pass


class ConfigurationError(RelayError):
    """Exception raised for missing or invalid configuration."""

    pass
