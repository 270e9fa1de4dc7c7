"""Payment endpoints.

Provides REST endpoints for:
- Opening a Stripe checkout session for a cart
- Checking a checkout session's payment status after redirect

No order is written here; orders are created from the Stripe webhook.
"""

from fastapi import APIRouter, Depends
from starlette.status import HTTP_201_CREATED

from storefront.models.payment import PaymentSessionResult, PaymentStatusResult
from storefront.services.fulfillment import FulfillmentOrchestrator
from storefront.utils.logging import get_logger
from storefront_api.dependencies import get_fulfillment_orchestrator
from storefront_api.models.payments import CheckoutRequest

logger = get_logger(__name__)

router = APIRouter(tags=["payments"])


@router.post(
    "/payments/checkout",
    summary="Open a checkout session",
    description="""
Validate the cart and open a Stripe Checkout session.

The cart snapshot is embedded in the session metadata and turned into an
order once Stripe confirms the payment via webhook.

**Notes:**
- All validation errors are returned at once in `details.field_errors`
- `success=false` with no error status means Stripe returned no redirect URL
""",
    response_model=PaymentSessionResult,
    status_code=HTTP_201_CREATED,
    responses={
        201: {"description": "Checkout session created"},
        400: {"description": "Invalid cart or customer data"},
        502: {"description": "Stripe rejected the request"},
    },
)
async def create_checkout(
    body: CheckoutRequest,
    orchestrator: FulfillmentOrchestrator = Depends(get_fulfillment_orchestrator),
) -> PaymentSessionResult:
    return orchestrator.initiate_payment(body.to_session_request())


@router.get(
    "/payments/{session_id}/status",
    summary="Get payment status",
    description="Check whether a checkout session has been paid (PAID, PENDING or FAILED).",
    response_model=PaymentStatusResult,
    responses={
        200: {"description": "Current payment status"},
        502: {"description": "Stripe lookup failed"},
    },
)
async def get_payment_status(
    session_id: str,
    orchestrator: FulfillmentOrchestrator = Depends(get_fulfillment_orchestrator),
) -> PaymentStatusResult:
    return orchestrator.check_payment_status(session_id)
