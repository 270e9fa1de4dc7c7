"""FastAPI dependency injection providers for storefront services.

Factory functions use @lru_cache so each service is built once per
process. Services are lazily instantiated.

Service Dependency Graph:
    DynamoDBService (singleton via get_dynamodb_service)
        ├── OrderStore
        ├── InventoryAdjuster
        ├── CartReconciler
        └── WebhookHandler
    StripeService (credentials from SSM)
    NotificationDispatcher (SES, then client-side fallback)
    FulfillmentOrchestrator (all of the above)

Testing:
    Use reset_services() to clear cached instances between tests, or
    override providers with app.dependency_overrides.
"""

from functools import lru_cache

from storefront.services.cart_reconciler import CartReconciler
from storefront.services.dynamodb import get_dynamodb_service
from storefront.services.fulfillment import FulfillmentOrchestrator
from storefront.services.inventory import InventoryAdjuster
from storefront.services.notifier import (
    ClientSideNotifier,
    NotificationDispatcher,
    SesEmailNotifier,
)
from storefront.services.order_store import OrderStore
from storefront.services.stripe_service import StripeService, build_stripe_service
from storefront.services.webhook_handler import WebhookHandler


@lru_cache
def get_stripe_service() -> StripeService:
    """Get cached StripeService built from SSM credentials."""
    return build_stripe_service()


@lru_cache
def get_order_store() -> OrderStore:
    return OrderStore(db=get_dynamodb_service())


@lru_cache
def get_notification_dispatcher() -> NotificationDispatcher:
    """Get cached dispatcher: SES first, client-side confirmation as fallback."""
    return NotificationDispatcher([SesEmailNotifier(), ClientSideNotifier()])


@lru_cache
def get_fulfillment_orchestrator() -> FulfillmentOrchestrator:
    """Get cached FulfillmentOrchestrator.

    Returns:
        FulfillmentOrchestrator configured with all required dependencies.
    """
    db = get_dynamodb_service()
    return FulfillmentOrchestrator(
        payments=get_stripe_service(),
        orders=get_order_store(),
        inventory=InventoryAdjuster(db=db),
        carts=CartReconciler(db=db),
        notifications=get_notification_dispatcher(),
    )


@lru_cache
def get_webhook_handler() -> WebhookHandler:
    return WebhookHandler(db=get_dynamodb_service(), orchestrator=get_fulfillment_orchestrator())


def reset_services() -> None:
    """Clear all cached service instances.

    Also resets the DynamoDB singleton and the SSM parameter cache.
    """
    from storefront.services.dynamodb import reset_dynamodb_service
    from storefront.services.ssm_service import SSMService, get_ssm_service

    get_stripe_service.cache_clear()
    get_order_store.cache_clear()
    get_notification_dispatcher.cache_clear()
    get_fulfillment_orchestrator.cache_clear()
    get_webhook_handler.cache_clear()

    get_ssm_service.cache_clear()
    SSMService._cache.clear()
    reset_dynamodb_service()
