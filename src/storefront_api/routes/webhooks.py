"""Webhook endpoints for Stripe.

These endpoints do NOT require authentication as they receive signed
payloads from Stripe.
"""

from fastapi import APIRouter, Depends, Request

from storefront.models.errors import ErrorCode, WebhookError
from storefront.services.stripe_service import StripeService
from storefront.services.webhook_handler import WebhookHandler
from storefront.utils.logging import get_logger
from storefront_api.dependencies import get_stripe_service, get_webhook_handler
from storefront_api.models.payments import WebhookResponse

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post(
    "/webhooks/stripe",
    summary="Receive Stripe webhook events",
    description="""
Endpoint for Stripe webhook events. Handles:
- checkout.session.completed: creates the order when the session is paid
- checkout.session.async_payment_succeeded: creates the order for delayed payments
- checkout.session.async_payment_failed: acknowledged, no order

**No authentication required** - signature is verified using Stripe webhook secret.

**Idempotent**: Duplicate events (same event_id or same checkout session)
return 200 with 'duplicate' result.

Events whose metadata cannot produce an order are acknowledged with
'rejected' so Stripe stops retrying. Order store failures return 500 so
Stripe retries.
""",
    response_model=WebhookResponse,
    responses={
        200: {"description": "Event received and processed (or acknowledged)"},
        400: {"description": "Invalid signature or missing header"},
        500: {"description": "Order could not be stored, Stripe will retry"},
    },
)
async def handle_stripe_webhook(
    request: Request,
    stripe_service: StripeService = Depends(get_stripe_service),
    handler: WebhookHandler = Depends(get_webhook_handler),
) -> WebhookResponse:
    """Verify the signature, then hand the event to the webhook handler."""
    signature = request.headers.get("Stripe-Signature")
    if not signature:
        logger.warning("Webhook request missing Stripe-Signature header")
        raise WebhookError(
            "Missing Stripe-Signature header",
            code=ErrorCode.INVALID_WEBHOOK_SIGNATURE,
        )

    # Raw body is needed for signature verification
    payload = await request.body()
    event = stripe_service.verify_webhook_signature(payload, signature)

    outcome = handler.process_event(event, StripeService.compute_payload_hash(payload))

    return WebhookResponse(
        received=True,
        event_id=outcome.event_id,
        event_type=outcome.event_type,
        processing_result=outcome.processing_result,
        message=outcome.message,
        order_id=outcome.order_id,
    )
