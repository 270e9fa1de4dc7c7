"""Stripe credentials from AWS SSM Parameter Store.

SecureString values are decrypted on read and kept for the lifetime of the
process, so a warm Lambda reads each secret once.
"""

import logging
from functools import lru_cache
from typing import ClassVar

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .aws_config import get_client_config

logger = logging.getLogger(__name__)

# SSM error code -> message template
_ERROR_MESSAGES = {
    "ParameterNotFound": "SSM parameter not found: {name}",
    "AccessDeniedException": "Access denied to SSM parameter {name}; ssm:GetParameter is required",
}


class SSMServiceError(Exception):
    """A parameter could not be read."""


class SSMService:
    """Cached reader for SSM parameters.

    Usage:
        secret_key = get_ssm_service().get_parameter("/storefront/dev/stripe/secret_key")
    """

    # Shared across instances, cleared with clear_cache()
    _cache: ClassVar[dict[str, str]] = {}

    def __init__(self) -> None:
        self._client = boto3.client("ssm", config=get_client_config())

    def get_parameter(self, name: str, *, use_cache: bool = True) -> str:
        """Return the decrypted value of ``name``.

        Raises:
            SSMServiceError: If SSM is unreachable or refuses the read.
        """
        if use_cache and name in self._cache:
            return self._cache[name]

        logger.info("Reading SSM parameter %s", name)
        try:
            response = self._client.get_parameter(Name=name, WithDecryption=True)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            template = _ERROR_MESSAGES.get(code, "Failed to read SSM parameter {name}: {error}")
            raise SSMServiceError(template.format(name=name, error=e)) from e
        except BotoCoreError as e:
            raise SSMServiceError(f"Could not reach SSM for {name}: {e}") from e

        self._cache[name] = response["Parameter"]["Value"]
        return self._cache[name]

    def clear_cache(self) -> None:
        self._cache.clear()


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    """Shared SSMService for the process."""
    return SSMService()
