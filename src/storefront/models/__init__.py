"""Pydantic models for storefront payment fulfillment."""

from .cart import AbandonedCart, CartReconciliationSummary
from .enums import (
    FulfillmentStage,
    NotificationTemplate,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from .errors import (
    ERROR_MESSAGES,
    STRIPE_ERROR_MESSAGES,
    STRIPE_RETRYABLE_ERRORS,
    ErrorCode,
    ErrorResponse,
    NotFoundError,
    OrderError,
    PaymentError,
    PaymentServiceError,
    ValidationError,
    WebhookError,
    get_user_friendly_stripe_message,
    is_stripe_error_retryable,
)
from .fulfillment import (
    ContextParseError,
    FulfillmentContext,
    FulfillmentResult,
    StockAdjustmentFailure,
    StockAdjustmentSummary,
)
from .notification import NotificationOutcome, NotificationResult
from .order import ALLOWED_TRANSITIONS, Order, OrderCreate, is_transition_allowed
from .payment import (
    PaymentItem,
    PaymentSessionRequest,
    PaymentSessionResult,
    PaymentStatusResult,
    WebhookEvent,
)

__all__ = [
    # Enums
    "FulfillmentStage",
    "NotificationTemplate",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    # Payment
    "PaymentItem",
    "PaymentSessionRequest",
    "PaymentSessionResult",
    "PaymentStatusResult",
    "WebhookEvent",
    # Order
    "ALLOWED_TRANSITIONS",
    "Order",
    "OrderCreate",
    "is_transition_allowed",
    # Cart
    "AbandonedCart",
    "CartReconciliationSummary",
    # Fulfillment
    "ContextParseError",
    "FulfillmentContext",
    "FulfillmentResult",
    "StockAdjustmentFailure",
    "StockAdjustmentSummary",
    # Notification
    "NotificationOutcome",
    "NotificationResult",
    # Errors
    "ERROR_MESSAGES",
    "STRIPE_ERROR_MESSAGES",
    "STRIPE_RETRYABLE_ERRORS",
    "ErrorCode",
    "ErrorResponse",
    "NotFoundError",
    "OrderError",
    "PaymentError",
    "PaymentServiceError",
    "ValidationError",
    "WebhookError",
    "get_user_friendly_stripe_message",
    "is_stripe_error_retryable",
]
