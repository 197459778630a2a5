"""
Configuration Settings

Centralized configuration management using environment variables.
"""

from typing import Dict, List, Optional
from urllib.parse import urlparse

from pydantic import Field, ValidationError as PydanticValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings

from utils.exceptions import ConfigurationError

APP_NAME = "Webhook Relay"
APP_VERSION = "1.0.0"

SENSITIVE_FIELDS = ("bearer_token", "shared_secret", "public_key")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    environment: str = Field(default="production", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Downstream Configuration
    downstream_url: str = Field(
        ...,
        alias="DOWNSTREAM_URL",
        description="Automation endpoint webhooks are relayed to"
    )
    bearer_token: Optional[str] = Field(
        default=None,
        alias="BEARER_TOKEN",
        description="Bearer token sent to the downstream endpoint"
    )
    bearer_token_secret: Optional[str] = Field(
        default=None,
        alias="BEARER_TOKEN_SECRET",
        description="AWS Secrets Manager secret name for the bearer token"
    )

    # Inbound Signature Verification
    shared_secret: Optional[str] = Field(
        default=None,
        alias="SHARED_SECRET",
        description="Shared secret for HMAC signature verification"
    )
    shared_secret_name: Optional[str] = Field(
        default=None,
        alias="SHARED_SECRET_NAME",
        description="AWS Secrets Manager secret name for the shared secret"
    )
    public_key: Optional[str] = Field(
        default=None,
        alias="PUBLIC_KEY",
        description="Provider public key (PEM or bare base64)"
    )
    signature_verification_enabled: bool = Field(
        default=False,
        alias="SIGNATURE_VERIFICATION_ENABLED"
    )

    # Inbound Request Limits
    max_payload_size: int = Field(
        default=1048576,
        alias="MAX_PAYLOAD_SIZE",
        ge=0,
        description="Maximum accepted payload size in bytes"
    )
    ip_allow_list: str = Field(
        default="",
        alias="IP_ALLOW_LIST",
        description="Comma-separated IP addresses and CIDR ranges"
    )

    # Operational Settings
    request_timeout: float = Field(
        default=30,
        alias="REQUEST_TIMEOUT",
        gt=0,
        description="HTTP request timeout in seconds"
    )
    connect_timeout: float = Field(
        default=10,
        alias="CONNECT_TIMEOUT",
        gt=0,
        description="HTTP connect timeout in seconds"
    )
    retry_attempts: int = Field(
        default=3,
        alias="RETRY_ATTEMPTS",
        ge=1,
        description="Maximum number of delivery attempts"
    )
    retry_base_delay: float = Field(
        default=1.0,
        alias="RETRY_BASE_DELAY",
        ge=0,
        description="Base delay in seconds; attempt N waits N times this"
    )
    tls_verify: bool = Field(default=True, alias="TLS_VERIFY")

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        populate_by_name = True
        extra = "ignore"

    @field_validator("downstream_url")
    @classmethod
    def validate_downstream_url(cls, value: str) -> str:
        value = value.strip()
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("DOWNSTREAM_URL must be an absolute http(s) URL")
        return value

    @field_validator(
        "bearer_token",
        "bearer_token_secret",
        "shared_secret",
        "shared_secret_name",
        "public_key",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        return value.upper()

    @model_validator(mode="after")
    def require_bearer_token(self) -> "Settings":
        if not (self.bearer_token or self.bearer_token_secret):
            raise ValueError("BEARER_TOKEN or BEARER_TOKEN_SECRET must be set")
        return self

    @property
    def allowed_ips(self) -> List[str]:
        """Parsed IP allow-list entries."""
        return [entry.strip() for entry in self.ip_allow_list.split(",") if entry.strip()]

    @property
    def signature_verification_active(self) -> bool:
        """Verification runs only when enabled and a credential is configured."""
        return self.signature_verification_enabled and bool(
            self.shared_secret or self.public_key
        )

    def masked(self) -> Dict[str, object]:
        """Settings as a dictionary with credentials masked."""
        data = self.model_dump()
        for key in SENSITIVE_FIELDS:
            if data.get(key):
                data[key] = "***masked***"
        return data


def load_settings(secrets_provider=None, **overrides) -> Settings:
    """
    Load and validate settings, resolving secrets stored in Secrets Manager.

    Args:
        secrets_provider: Provider used for ``*_SECRET`` / ``*_NAME`` settings
        **overrides: Explicit values taking precedence over the environment

    Returns:
        Validated Settings instance

    Raises:
        ConfigurationError: If required settings are missing or invalid
    """
    try:
        settings = Settings(**overrides)
    except PydanticValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in error['loc']) or 'settings'}: {error['msg']}"
            for error in e.errors()
        ]
        raise ConfigurationError(
            "Invalid relay configuration", details={"errors": errors}
        ) from e

    updates = {}
    if not settings.bearer_token:
        updates["bearer_token"] = _resolve_secret(
            secrets_provider, settings.bearer_token_secret, "BEARER_TOKEN_SECRET"
        )
    if not settings.shared_secret and settings.shared_secret_name:
        updates["shared_secret"] = _resolve_secret(
            secrets_provider, settings.shared_secret_name, "SHARED_SECRET_NAME"
        )

    if updates:
        settings = settings.model_copy(update=updates)

    return settings


def _resolve_secret(secrets_provider, secret_name: str, setting: str) -> str:
    from adapters.secrets import SecretsError

    if secrets_provider is None:
        raise ConfigurationError(f"{setting} is set but no secrets provider is available")

    try:
        value = secrets_provider.get_secret(secret_name)
    except SecretsError as e:
        raise ConfigurationError(f"Could not resolve {setting}: {str(e)}") from e

    if not value:
        raise ConfigurationError(f"{setting} resolved to an empty value")
    return value


def get_settings() -> Settings:
    """
    Get application settings instance.

    Returns:
        Settings instance with values loaded from environment
    """
    from adapters.secrets import get_secrets_provider

    return load_settings(secrets_provider=get_secrets_provider())
