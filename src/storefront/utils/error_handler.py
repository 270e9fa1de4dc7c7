"""Central error logging and response formatting.

Production (``ENVIRONMENT`` = prod/production) logs one JSON line per error
and hides messages of unexpected exceptions from API responses.
Development logs the full error info with traceback.
"""

import datetime as dt
import json
import os
from typing import Any

from storefront.models.errors import (
    ErrorCode,
    PaymentError,
    PaymentServiceError,
    get_user_friendly_stripe_message,
    is_stripe_error_retryable,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

PRODUCTION_ENVIRONMENTS = {"prod", "production"}
INTERNAL_ERROR_MESSAGE = "An internal error occurred"


def is_production() -> bool:
    """Whether the process runs in a production environment."""
    return os.environ.get("ENVIRONMENT", "dev").lower() in PRODUCTION_ENVIRONMENTS


def log_error(error: BaseException, context: dict[str, Any] | None = None) -> dict[str, Any]:
    """Log an error with structured context.

    Args:
        error: The error to log
        context: Operation context (operation name, IDs, ...)

    Returns:
        The structured error info that was logged
    """
    info: dict[str, Any] = {
        "timestamp": dt.datetime.now(dt.UTC).isoformat(),
        "name": type(error).__name__,
        "message": str(error),
        "context": context,
    }
    if isinstance(error, PaymentError):
        info["code"] = error.code
        info["status_code"] = error.status_code
        info["details"] = error.details

    if is_production():
        logger.error(json.dumps(info, default=str))
    else:
        logger.error("Error: %s", info, exc_info=error)

    return info


def format_error_for_response(error: BaseException) -> dict[str, Any]:
    """Build the API error body for an error.

    Returns:
        Dict with success, error_code, message, details and status_code
    """
    if isinstance(error, PaymentServiceError):
        details = dict(error.details or {})
        details["retryable"] = is_stripe_error_retryable(error.provider_code)
        message = (
            get_user_friendly_stripe_message(error.provider_code)
            if is_production()
            else error.message
        )
        return {
            "success": False,
            "error_code": error.code,
            "message": message,
            "details": details,
            "status_code": error.status_code,
        }

    if isinstance(error, PaymentError):
        return {
            "success": False,
            "error_code": error.code,
            "message": error.message,
            "details": error.details,
            "status_code": error.status_code,
        }

    return {
        "success": False,
        "error_code": ErrorCode.UNKNOWN_ERROR.value,
        "message": INTERNAL_ERROR_MESSAGE if is_production() else str(error),
        "details": None,
        "status_code": 500,
    }


def handle_error(error: BaseException, context: dict[str, Any] | None = None) -> dict[str, Any]:
    """Log an error and return its formatted response body."""
    log_error(error, context)
    return format_error_for_response(error)
