"""Services for storefront payment fulfillment."""

from .cart_reconciler import CartReconciler
from .dynamodb import DynamoDBService, get_dynamodb_service, reset_dynamodb_service
from .fulfillment import FulfillmentOrchestrator
from .inventory import InventoryAdjuster
from .notifier import (
    ClientSideNotifier,
    NotificationDispatcher,
    Notifier,
    SesEmailNotifier,
)
from .order_store import DuplicateOrderError, OrderStore
from .ssm_service import SSMService, SSMServiceError, get_ssm_service
from .stripe_service import StripeService, build_stripe_service
from .validation import validate_amount, validate_items, validate_payment_request
from .webhook_handler import WebhookHandler, WebhookOutcome

__all__ = [
    # Stores
    "CartReconciler",
    "DynamoDBService",
    "InventoryAdjuster",
    "OrderStore",
    "DuplicateOrderError",
    "get_dynamodb_service",
    "reset_dynamodb_service",
    # Providers
    "SSMService",
    "SSMServiceError",
    "get_ssm_service",
    "StripeService",
    "build_stripe_service",
    # Notifications
    "ClientSideNotifier",
    "NotificationDispatcher",
    "Notifier",
    "SesEmailNotifier",
    # Fulfillment
    "FulfillmentOrchestrator",
    "WebhookHandler",
    "WebhookOutcome",
    # Validation
    "validate_amount",
    "validate_items",
    "validate_payment_request",
]
