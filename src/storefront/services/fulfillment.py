"""Fulfillment orchestrator: from a paid checkout session to an order.

``initiate_payment`` opens a checkout session and persists nothing; the
cart snapshot travels in the session metadata. ``handle_webhook`` turns a
verified provider notification into exactly one order, then runs the
best-effort steps (stock, abandoned carts, notifications) whose failures
are logged and reported but never undo the order.
"""

from decimal import Decimal
from typing import TYPE_CHECKING

from storefront.models.cart import CartReconciliationSummary
from storefront.models.enums import FulfillmentStage, PaymentStatus
from storefront.models.errors import ErrorCode, WebhookError
from storefront.models.fulfillment import (
    ContextParseError,
    FulfillmentContext,
    FulfillmentResult,
    StockAdjustmentFailure,
    StockAdjustmentSummary,
)
from storefront.models.notification import NotificationOutcome
from storefront.models.order import Order, OrderCreate
from storefront.models.payment import (
    PaymentSessionRequest,
    PaymentSessionResult,
    PaymentStatusResult,
    WebhookEvent,
)
from storefront.utils.error_handler import log_error
from storefront.utils.logging import get_logger, log_payment_operation

from .order_store import DuplicateOrderError
from .validation import validate_payment_request

if TYPE_CHECKING:
    from .cart_reconciler import CartReconciler
    from .inventory import InventoryAdjuster
    from .notifier import NotificationDispatcher
    from .order_store import OrderStore
    from .stripe_service import StripeService

logger = get_logger(__name__)

DEFAULT_CURRENCY = "eur"

STATUS_MESSAGES: dict[PaymentStatus, str] = {
    PaymentStatus.PAID: "Payment confirmed",
    PaymentStatus.PENDING: "Payment is still pending",
    PaymentStatus.FAILED: "Payment failed or the session expired",
}


class FulfillmentOrchestrator:
    """Coordinates payment initiation and webhook fulfillment."""

    def __init__(
        self,
        payments: "StripeService",
        orders: "OrderStore",
        inventory: "InventoryAdjuster",
        carts: "CartReconciler",
        notifications: "NotificationDispatcher",
    ) -> None:
        self.payments = payments
        self.orders = orders
        self.inventory = inventory
        self.carts = carts
        self.notifications = notifications

    def initiate_payment(self, request: PaymentSessionRequest) -> PaymentSessionResult:
        """Validate the request and open a checkout session.

        Raises:
            ValidationError: If the request is invalid (no provider call made).
            PaymentServiceError: If the provider rejects the session.
        """
        validate_payment_request(request)

        context = FulfillmentContext.from_request(request)
        session_request = request.model_copy(
            update={"metadata": {**request.metadata, **context.to_metadata()}}
        )

        result = self.payments.create_session(session_request)
        log_payment_operation(
            logger,
            "initiate_payment",
            session_id=result.session_id,
            user_id=request.user_id,
            amount=context.total_amount,
            error=result.error,
        )
        return result

    def check_payment_status(self, session_id: str) -> PaymentStatusResult:
        """Report a checkout session's payment status to the client."""
        status = self.payments.verify_status(session_id)
        return PaymentStatusResult(
            session_id=session_id,
            status=status,
            success=status == PaymentStatus.PAID,
            message=STATUS_MESSAGES[status],
        )

    def handle_webhook(self, event: WebhookEvent) -> FulfillmentResult:
        """Fulfill a paid checkout session.

        Returns:
            FulfillmentResult. success=False (with no writes) when the event
            is not a paid session with metadata; duplicate=True when the
            session already has an order.

        Raises:
            WebhookError: Unusable metadata (missing user, bad or empty items).
            OrderError: The order could not be stored; the provider should retry.
        """
        stages = [FulfillmentStage.RECEIVED]

        if event.payment_status != PaymentStatus.PAID or event.metadata is None:
            message = (
                f"Payment status is {event.payment_status.value}, nothing to fulfill"
                if event.payment_status != PaymentStatus.PAID
                else "Payment metadata missing, nothing to fulfill"
            )
            log_payment_operation(
                logger,
                "handle_webhook",
                session_id=event.session_id,
                status=event.payment_status.value,
                result="ignored",
            )
            return FulfillmentResult(success=False, message=message, stages=stages)

        context = self._read_context(event)
        stages.append(FulfillmentStage.VALIDATED)

        try:
            order = self.orders.create(self._build_order(event, context))
        except DuplicateOrderError as e:
            log_payment_operation(
                logger,
                "handle_webhook",
                order_id=e.order_id,
                session_id=event.session_id,
                result="duplicate",
            )
            return FulfillmentResult(
                success=True,
                duplicate=True,
                order_id=e.order_id,
                message="Order already created for this checkout session",
                stages=stages,
            )
        stages.append(FulfillmentStage.ORDER_CREATED)

        inventory = self._adjust_inventory(order)
        if inventory.all_succeeded:
            stages.append(FulfillmentStage.INVENTORY_ADJUSTED)

        cart = self._reconcile_carts(order)
        if cart.succeeded:
            stages.append(FulfillmentStage.CART_RECONCILED)

        notification = self._notify(order)
        if notification.confirmation and notification.confirmation.success:
            stages.append(FulfillmentStage.NOTIFIED)

        stages.append(FulfillmentStage.DONE)
        log_payment_operation(
            logger,
            "handle_webhook",
            order_id=order.id,
            session_id=event.session_id,
            user_id=order.user_id,
            amount=order.total_amount,
            status=order.status.value,
            stock_failures=len(inventory.failures),
        )
        return FulfillmentResult(
            success=True,
            order_id=order.id,
            message="Order created",
            stages=stages,
            inventory=inventory,
            cart=cart,
            notification=notification,
        )

    def _read_context(self, event: WebhookEvent) -> FulfillmentContext:
        metadata = event.metadata or {}

        if not metadata.get("userId"):
            raise WebhookError(
                code=ErrorCode.MISSING_USER_ID,
                details={"session_id": event.session_id},
            )

        try:
            context = FulfillmentContext.from_metadata(metadata)
        except ContextParseError as e:
            log_error(e, {"operation": "parse_items", "session_id": event.session_id})
            raise WebhookError(
                code=ErrorCode.UNPARSEABLE_ITEMS,
                details={"session_id": event.session_id, "reason": str(e)},
            ) from e

        if not context.items:
            raise WebhookError(
                code=ErrorCode.NO_ITEMS,
                details={"session_id": event.session_id},
            )
        return context

    def _build_order(self, event: WebhookEvent, context: FulfillmentContext) -> OrderCreate:
        if event.amount_total is not None:
            total = (Decimal(event.amount_total) / 100).quantize(Decimal("0.01"))
        else:
            total = context.total_amount

        return OrderCreate(
            user_id=context.user_id or "",
            user_email=context.user_email or event.customer_email or "",
            items=context.items,
            total_amount=total,
            currency=(event.currency or DEFAULT_CURRENCY).lower(),
            stripe_session_id=event.session_id,
            payment_intent_id=event.payment_intent_id,
            metadata=dict(event.metadata or {}),
        )

    def _adjust_inventory(self, order: Order) -> StockAdjustmentSummary:
        try:
            return self.inventory.decrement_many(order.items)
        except Exception as e:
            # Stock failures are not critical - the order is paid
            log_error(e, {"operation": "adjust_inventory", "order_id": order.id})
            return StockAdjustmentSummary(
                requested=len(order.items),
                failures=[
                    StockAdjustmentFailure(product_id=item.id, quantity=item.quantity, error=str(e))
                    for item in order.items
                ],
            )

    def _reconcile_carts(self, order: Order) -> CartReconciliationSummary:
        try:
            return self.carts.reconcile_user(order.user_id)
        except Exception as e:
            log_error(e, {"operation": "reconcile_carts", "order_id": order.id})
            return CartReconciliationSummary(user_id=order.user_id, errors=[str(e)])

    def _notify(self, order: Order) -> NotificationOutcome:
        outcome = NotificationOutcome()
        try:
            outcome.confirmation = self.notifications.send_order_confirmation(order)
            if outcome.confirmation.success:
                outcome.operator_alert = self.notifications.send_operator_alert(order)
            else:
                outcome.skipped_reason = "Operator alert skipped: confirmation not sent"
                logger.warning(
                    "Confirmation for order %s not sent: %s",
                    order.id,
                    outcome.confirmation.error,
                )
        except Exception as e:
            log_error(e, {"operation": "send_notifications", "order_id": order.id})
            outcome.skipped_reason = str(e)
        return outcome
