"""Stripe event intake for order fulfillment.

Sits between the signature-verifying route and the orchestrator: maps the
raw event to a ``WebhookEvent``, decides whether it needs processing at all
and records the outcome per event id in ``stripe-webhook-events``. A
recorded event is acknowledged as a duplicate on redelivery, unless its
last attempt ended in ``error``.
"""

import datetime as dt
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from storefront.models.enums import PaymentStatus
from storefront.models.errors import OrderError, WebhookError
from storefront.models.payment import WebhookEvent
from storefront.utils.logging import get_logger, log_webhook_event

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService
    from .fulfillment import FulfillmentOrchestrator

logger = get_logger(__name__)

# Handled event types; None means the status comes from the session itself
HANDLED_EVENT_TYPES: dict[str, PaymentStatus | None] = {
    "checkout.session.completed": None,
    "checkout.session.async_payment_succeeded": PaymentStatus.PAID,
    "checkout.session.async_payment_failed": PaymentStatus.FAILED,
}

SESSION_PAYMENT_STATUS: dict[str, PaymentStatus] = {
    "paid": PaymentStatus.PAID,
    "no_payment_required": PaymentStatus.PAID,
    "unpaid": PaymentStatus.PENDING,
}

RESULT_ERROR = "error"


class WebhookOutcome(BaseModel):
    """Acknowledgement details for one Stripe event."""

    event_id: str | None = None
    event_type: str | None = None
    processing_result: str  # success, duplicate, skipped, rejected, error
    message: str | None = None
    order_id: str | None = None


def to_webhook_event(event: dict[str, Any]) -> WebhookEvent:
    """Extract the checkout session fields the orchestrator needs."""
    session = event.get("data", {}).get("object", {})

    status = HANDLED_EVENT_TYPES.get(event.get("type", ""))
    if status is None:
        status = SESSION_PAYMENT_STATUS.get(session.get("payment_status") or "", PaymentStatus.PENDING)

    metadata = session.get("metadata")
    if metadata is not None:
        metadata = {str(k): str(v) for k, v in metadata.items()}

    return WebhookEvent(
        session_id=session.get("id", ""),
        payment_status=status,
        amount_total=session.get("amount_total"),
        currency=session.get("currency"),
        customer_email=session.get("customer_email")
        or (session.get("customer_details") or {}).get("email"),
        metadata=metadata,
        payment_intent_id=session.get("payment_intent"),
        event_id=event.get("id"),
    )


class WebhookHandler:
    """Processes verified Stripe events at most once per event id."""

    WEBHOOK_EVENTS_TABLE = "stripe-webhook-events"

    def __init__(self, db: "DynamoDBService", orchestrator: "FulfillmentOrchestrator") -> None:
        self._db = db
        self._orchestrator = orchestrator

    def is_event_already_processed(self, event_id: str) -> bool:
        """True when the event has a recorded outcome other than ``error``."""
        record = self._db.get_item(
            self.WEBHOOK_EVENTS_TABLE, {"event_id": event_id}, consistent_read=True
        )
        return bool(record) and record.get("processing_result") != RESULT_ERROR

    def log_event(
        self,
        event_id: str,
        event_type: str,
        payload_hash: str,
        session_id: str | None,
        order_id: str | None,
        processing_result: str,
        error_message: str | None = None,
    ) -> None:
        """Record the outcome of an event, replacing any earlier attempt.

        ``payload_hash`` is the SHA-256 of the raw body, kept for audits.
        """
        record: dict[str, Any] = {
            "event_id": event_id,
            "event_type": event_type,
            "payload_hash": payload_hash,
            "processing_result": processing_result,
            "processed_at": dt.datetime.now(dt.UTC).isoformat(),
        }
        optional = {"session_id": session_id, "order_id": order_id, "error_message": error_message}
        record.update({key: value for key, value in optional.items() if value})
        self._db.put_item(self.WEBHOOK_EVENTS_TABLE, record)

    def process_event(self, event: dict[str, Any], payload_hash: str) -> WebhookOutcome:
        """Process one verified event.

        Unusable metadata (``WebhookError``) is recorded as ``rejected`` and
        acknowledged, since a retry would fail the same way.

        Raises:
            OrderError: The order could not be stored. Recorded as ``error``
                so Stripe's retry is processed again.
        """
        event_id = event.get("id", "")
        event_type = event.get("type", "")
        log_webhook_event(logger, event_type, event_id, result="received")

        def outcome(result: str, message: str | None, order_id: str | None = None) -> WebhookOutcome:
            return WebhookOutcome(
                event_id=event_id,
                event_type=event_type,
                processing_result=result,
                message=message,
                order_id=order_id,
            )

        if self.is_event_already_processed(event_id):
            log_webhook_event(logger, event_type, event_id, result="duplicate")
            return outcome("duplicate", "Event already processed")

        if event_type not in HANDLED_EVENT_TYPES:
            log_webhook_event(logger, event_type, event_id, result="skipped")
            self.log_event(event_id, event_type, payload_hash, None, None, "skipped")
            return outcome("skipped", f"Event type '{event_type}' is not handled")

        webhook_event = to_webhook_event(event)
        session_id = webhook_event.session_id

        try:
            result = self._orchestrator.handle_webhook(webhook_event)
        except WebhookError as e:
            log_webhook_event(
                logger, event_type, event_id, session_id=session_id, result="rejected", error=e.code
            )
            self.log_event(event_id, event_type, payload_hash, session_id, None, "rejected", e.message)
            return outcome("rejected", e.message)
        except OrderError as e:
            log_webhook_event(
                logger, event_type, event_id, session_id=session_id, result=RESULT_ERROR, error=e.message
            )
            self.log_event(event_id, event_type, payload_hash, session_id, None, RESULT_ERROR, e.message)
            raise

        if not result.success:
            processing_result = "skipped"
        elif result.duplicate:
            processing_result = "duplicate"
        else:
            processing_result = "success"

        log_webhook_event(
            logger,
            event_type,
            event_id,
            session_id=session_id,
            order_id=result.order_id,
            result=processing_result,
        )
        self.log_event(
            event_id,
            event_type,
            payload_hash,
            session_id,
            result.order_id,
            processing_result,
            None if result.success else result.message,
        )
        return outcome(processing_result, result.message, result.order_id)
