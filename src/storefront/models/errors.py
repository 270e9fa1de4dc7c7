"""Error taxonomy for the payment fulfillment pipeline.

Every error carries a stable machine-readable code, an HTTP-equivalent
status and an optional structured detail bag. The FastAPI layer converts
them to responses; the central handler in ``storefront.utils.error_handler``
logs them.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Stable error codes exposed to API clients."""

    # Generic
    PAYMENT_ERROR = "PAYMENT_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    NOT_FOUND = "NOT_FOUND"

    # Validation
    VALIDATION_ERROR = "VALIDATION_ERROR"
    EMPTY_CART = "EMPTY_CART"

    # Provider
    PAYMENT_SERVICE_ERROR = "PAYMENT_SERVICE_ERROR"
    STRIPE_SESSION_ERROR = "STRIPE_SESSION_ERROR"
    STRIPE_VERIFY_ERROR = "STRIPE_VERIFY_ERROR"
    INVALID_WEBHOOK_SIGNATURE = "INVALID_WEBHOOK_SIGNATURE"

    # Orders
    ORDER_ERROR = "ORDER_ERROR"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"

    # Webhooks
    WEBHOOK_ERROR = "WEBHOOK_ERROR"
    MISSING_USER_ID = "MISSING_USER_ID"
    UNPARSEABLE_ITEMS = "UNPARSEABLE_ITEMS"
    NO_ITEMS = "NO_ITEMS"


# Human-readable default messages
ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.PAYMENT_ERROR: "Payment processing failed",
    ErrorCode.UNKNOWN_ERROR: "An unexpected error occurred",
    ErrorCode.NOT_FOUND: "Resource not found",
    ErrorCode.VALIDATION_ERROR: "The payment request is invalid",
    ErrorCode.EMPTY_CART: "The cart cannot be empty",
    ErrorCode.PAYMENT_SERVICE_ERROR: "The payment provider could not process the request",
    ErrorCode.STRIPE_SESSION_ERROR: "Failed to create checkout session",
    ErrorCode.STRIPE_VERIFY_ERROR: "Failed to verify payment status",
    ErrorCode.INVALID_WEBHOOK_SIGNATURE: "Invalid webhook signature",
    ErrorCode.ORDER_ERROR: "The order could not be saved",
    ErrorCode.INVALID_STATUS_TRANSITION: "The order cannot move to the requested status",
    ErrorCode.WEBHOOK_ERROR: "The webhook event could not be processed",
    ErrorCode.MISSING_USER_ID: "User ID missing from payment metadata",
    ErrorCode.UNPARSEABLE_ITEMS: "Items in payment metadata could not be parsed",
    ErrorCode.NO_ITEMS: "No items found in payment metadata",
}


def _default_message(code: str) -> str:
    try:
        return ERROR_MESSAGES[ErrorCode(code)]
    except ValueError:
        return code


class ErrorResponse(BaseModel):
    """Standard error body returned by the API."""

    model_config = ConfigDict(strict=True)

    success: bool = False
    error_code: str
    message: str
    details: Optional[dict[str, Any]] = None


class PaymentError(Exception):
    """Base error for the payment system."""

    default_code: ErrorCode = ErrorCode.PAYMENT_ERROR
    default_status: int = 500

    def __init__(
        self,
        message: Optional[str] = None,
        code: ErrorCode | str | None = None,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        resolved = code or self.default_code
        self.code = resolved.value if isinstance(resolved, ErrorCode) else resolved
        self.status_code = status_code or self.default_status
        self.details = details
        if message is None:
            message = _default_message(self.code)
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for structured logging."""
        return {
            "name": type(self).__name__,
            "message": self.message,
            "code": self.code,
            "status_code": self.status_code,
            "details": self.details,
        }

    def to_response(self) -> ErrorResponse:
        """Convert to the API error body."""
        return ErrorResponse(
            error_code=self.code,
            message=self.message,
            details=self.details,
        )


class ValidationError(PaymentError):
    """Malformed caller input, rejected before any I/O."""

    default_code = ErrorCode.VALIDATION_ERROR
    default_status = 400


class PaymentServiceError(PaymentError):
    """The payment provider rejected or failed a call."""

    default_code = ErrorCode.PAYMENT_SERVICE_ERROR
    default_status = 502

    @property
    def provider_code(self) -> Optional[str]:
        """Provider-specific error code (e.g. 'card_declined') if known."""
        if self.details:
            return self.details.get("provider_code")
        return None


class OrderError(PaymentError):
    """The order store failed; fatal for the fulfillment attempt."""

    default_code = ErrorCode.ORDER_ERROR
    default_status = 500


class WebhookError(PaymentError):
    """The webhook event is well-formed but semantically unusable."""

    default_code = ErrorCode.WEBHOOK_ERROR
    default_status = 400


class NotFoundError(PaymentError):
    """A lookup for an order, session or payment missed."""

    default_code = ErrorCode.NOT_FOUND
    default_status = 404


# Checkout-facing wording for the Stripe codes shoppers actually hit
STRIPE_ERROR_MESSAGES: dict[str, str] = {
    "card_declined": "The card was declined. Try another card or payment method.",
    "generic_decline": "The card was declined. Try another card or payment method.",
    "expired_card": "This card has expired. Use a card that is still valid.",
    "insufficient_funds": "The card was declined for insufficient funds.",
    "incorrect_cvc": "The card's security code does not match. Check it and retry.",
    "incorrect_number": "The card number does not match. Check it and retry.",
    "invalid_number": "That is not a valid card number.",
    "parameter_invalid_integer": "An item in the cart has a price checkout cannot accept.",
    "url_invalid": "Checkout could not be opened because a return link is invalid.",
    "processing_error": "The payment provider hit an error. Retry in a moment.",
    "rate_limit": "Checkout is busy right now. Retry in a moment.",
}

# Transient on Stripe's side; the same request may succeed later
STRIPE_RETRYABLE_ERRORS: set[str] = {
    "api_connection_error",
    "lock_timeout",
    "processing_error",
    "rate_limit",
}

DEFAULT_STRIPE_MESSAGE = "Checkout could not be started. Retry in a moment."


def get_user_friendly_stripe_message(
    stripe_error_code: Optional[str], default_message: str = DEFAULT_STRIPE_MESSAGE
) -> str:
    """Shopper-facing text for a Stripe code, or ``default_message``."""
    return STRIPE_ERROR_MESSAGES.get(stripe_error_code or "", default_message)


def is_stripe_error_retryable(stripe_error_code: Optional[str]) -> bool:
    return bool(stripe_error_code) and stripe_error_code in STRIPE_RETRYABLE_ERRORS
