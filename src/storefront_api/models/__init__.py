"""API-specific request/response models."""

from storefront_api.models.payments import (
    CheckoutItem,
    CheckoutRequest,
    WebhookResponse,
)

__all__ = ["CheckoutItem", "CheckoutRequest", "WebhookResponse"]
