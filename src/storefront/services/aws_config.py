"""Shared botocore client configuration.

Every AWS call made by the pipeline gets a bounded connect/read timeout so a
slow store can never hang a webhook past the provider's retry window.
"""

import os

from botocore.config import Config

DEFAULT_TIMEOUT_SECONDS = 5.0
DEFAULT_MAX_ATTEMPTS = 3


def get_client_config() -> Config:
    """Build the botocore Config from environment variables.

    Reads AWS_TIMEOUT_SECONDS (connect and read timeout) and
    AWS_MAX_ATTEMPTS (standard retry mode attempts).
    """
    timeout = float(os.environ.get("AWS_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))
    max_attempts = int(os.environ.get("AWS_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS))
    return Config(
        connect_timeout=timeout,
        read_timeout=timeout,
        retries={"max_attempts": max_attempts, "mode": "standard"},
    )
