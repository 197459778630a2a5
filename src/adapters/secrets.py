"""
Secrets Provider Abstraction

Provides pluggable secrets retrieval for local development and AWS deployment.
"""

import json
import os
from abc import ABC, abstractmethod
from typing import Optional

# Keys looked up, in order, when a secret is stored as a JSON document.
JSON_SECRET_KEYS = ("value", "token", "secret")


class SecretsProvider(ABC):
    """Abstract base class for secrets providers."""

    @abstractmethod
    def get_secret(self, secret_name: str) -> str:
        """
        Retrieve a secret value by name.

        Args:
            secret_name: Name/ID of the secret to retrieve

        Returns:
            Secret value as string

        Raises:
            SecretsError: If secret cannot be retrieved
        """
        pass


class SecretsError(Exception):
    """Raised when a secret cannot be retrieved."""

    pass


def unwrap_secret(secret: str) -> str:
    """Return the secret value, unwrapping a JSON document if needed."""
    try:
        secret_dict = json.loads(secret)
    except json.JSONDecodeError:
        return secret

    if not isinstance(secret_dict, dict):
        return secret

    for key in JSON_SECRET_KEYS:
        if secret_dict.get(key):
            return str(secret_dict[key])
    return secret


class AWSSecretsProvider(SecretsProvider):
    """
    AWS Secrets Manager provider.

    Retrieves secrets from AWS Secrets Manager. Used in production Lambda environment.
    The boto3 client is created on first use.
    """

    def __init__(self, region_name: Optional[str] = None):
        self._region_name = region_name
        self._client = None

    @property
    def client(self):
        if self._client is None:
            import boto3

            self._client = boto3.client("secretsmanager", region_name=self._region_name)
        return self._client

    def get_secret(self, secret_name: str) -> str:
        """Retrieve secret from AWS Secrets Manager."""
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            response = self.client.get_secret_value(SecretId=secret_name)
        except (ClientError, BotoCoreError) as e:
            raise SecretsError(f"Failed to retrieve secret '{secret_name}': {str(e)}")

        if "SecretString" not in response:
            raise SecretsError(f"Secret '{secret_name}' not in expected format")

        return unwrap_secret(response["SecretString"])


class LocalSecretsProvider(SecretsProvider):
    """
    Local secrets provider for development.

    Retrieves secrets from environment variables or a local secrets file.
    """

    def __init__(self, secrets_file: Optional[str] = None):
        """
        Initialize local secrets provider.

        Args:
            secrets_file: Optional path to JSON file containing secrets
        """
        self._secrets = {}

        if secrets_file and os.path.exists(secrets_file):
            with open(secrets_file, "r") as f:
                self._secrets = json.load(f)

    def get_secret(self, secret_name: str) -> str:
        """
        Retrieve secret from local file or environment.

        Tries, in order:
        1. Exact match in loaded secrets file
        2. Environment variable with exact name
        3. Environment variable with normalized name (slashes -> underscores, uppercase)
        """
        if secret_name in self._secrets:
            value = self._secrets[secret_name]
            if isinstance(value, dict):
                return unwrap_secret(json.dumps(value))
            return str(value)

        if secret_name in os.environ:
            return os.environ[secret_name]

        # e.g. "webhook-relay/bearer-token" -> "WEBHOOK_RELAY_BEARER_TOKEN"
        normalized = secret_name.replace("/", "_").replace("-", "_").upper()
        if normalized in os.environ:
            return os.environ[normalized]

        raise SecretsError(
            f"Secret '{secret_name}' not found. "
            f"Set environment variable '{normalized}' or add to secrets file."
        )


def get_secrets_provider(local_mode: bool = False, secrets_file: Optional[str] = None) -> SecretsProvider:
    """
    Factory function to get appropriate secrets provider.

    Args:
        local_mode: If True, use LocalSecretsProvider. If False, use AWSSecretsProvider.
        secrets_file: Optional path to local secrets file (only used in local mode)

    Returns:
        Configured SecretsProvider instance
    """
    # Auto-detect local mode from environment
    if os.environ.get("LOCAL_DEV", "").lower() in ("true", "1", "yes"):
        local_mode = True

    if local_mode:
        return LocalSecretsProvider(secrets_file=secrets_file or os.environ.get("LOCAL_SECRETS_FILE"))
    return AWSSecretsProvider(region_name=os.environ.get("AWS_REGION"))
