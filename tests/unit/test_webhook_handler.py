"""Unit tests for WebhookHandler.

Tests cover:
- Idempotency via the webhook events table
- Event type routing and session status mapping
- Rejected, error and skipped outcomes
"""

import copy
from typing import Any
from unittest.mock import MagicMock

import pytest

from storefront.models import (
    ErrorCode,
    FulfillmentResult,
    OrderError,
    PaymentStatus,
    WebhookError,
)
from storefront.services.webhook_handler import WebhookHandler, to_webhook_event

PAYLOAD_HASH = "a" * 64


@pytest.fixture
def orchestrator() -> MagicMock:
    mock = MagicMock()
    mock.handle_webhook.return_value = FulfillmentResult(
        success=True, order_id="ORD-3F2A9C1B7D4E", message="Order created"
    )
    return mock


@pytest.fixture
def handler(db: Any, orchestrator: MagicMock) -> WebhookHandler:
    return WebhookHandler(db, orchestrator)


def _event_record(dynamo_table: Any, event_id: str) -> dict[str, Any] | None:
    return dynamo_table("stripe-webhook-events").get_item(Key={"event_id": event_id}).get("Item")


class TestToWebhookEvent:
    """Test mapping Stripe events to WebhookEvent."""

    def test_completed_paid_session(self, checkout_completed_event: dict[str, Any]):
        event = to_webhook_event(checkout_completed_event)

        assert event.session_id == "cs_test_session_abc"
        assert event.payment_status == PaymentStatus.PAID
        assert event.amount_total == 120000
        assert event.payment_intent_id == "pi_test_intent_xyz"
        assert event.event_id == "evt_test_checkout_completed_123"
        assert event.metadata["userId"] == "u1"

    def test_completed_unpaid_session_is_pending(self, checkout_completed_event: dict[str, Any]):
        raw = copy.deepcopy(checkout_completed_event)
        raw["data"]["object"]["payment_status"] = "unpaid"

        assert to_webhook_event(raw).payment_status == PaymentStatus.PENDING

    def test_async_failure_is_failed(self, checkout_completed_event: dict[str, Any]):
        raw = copy.deepcopy(checkout_completed_event)
        raw["type"] = "checkout.session.async_payment_failed"

        assert to_webhook_event(raw).payment_status == PaymentStatus.FAILED

    def test_email_from_customer_details(self, checkout_completed_event: dict[str, Any]):
        raw = copy.deepcopy(checkout_completed_event)
        raw["data"]["object"]["customer_email"] = None
        raw["data"]["object"]["customer_details"] = {"email": "details@example.com"}

        assert to_webhook_event(raw).customer_email == "details@example.com"

    def test_missing_metadata_stays_none(self, checkout_completed_event: dict[str, Any]):
        raw = copy.deepcopy(checkout_completed_event)
        del raw["data"]["object"]["metadata"]

        assert to_webhook_event(raw).metadata is None


class TestProcessEvent:
    """Test event processing outcomes."""

    def test_success_is_logged(
        self,
        handler: WebhookHandler,
        orchestrator: MagicMock,
        checkout_completed_event: dict[str, Any],
        dynamo_table: Any,
    ):
        outcome = handler.process_event(checkout_completed_event, PAYLOAD_HASH)

        assert outcome.processing_result == "success"
        assert outcome.order_id == "ORD-3F2A9C1B7D4E"
        orchestrator.handle_webhook.assert_called_once()

        record = _event_record(dynamo_table, "evt_test_checkout_completed_123")
        assert record["processing_result"] == "success"
        assert record["payload_hash"] == PAYLOAD_HASH
        assert record["session_id"] == "cs_test_session_abc"
        assert record["order_id"] == "ORD-3F2A9C1B7D4E"

    def test_same_event_twice_is_duplicate(
        self,
        handler: WebhookHandler,
        orchestrator: MagicMock,
        checkout_completed_event: dict[str, Any],
    ):
        handler.process_event(checkout_completed_event, PAYLOAD_HASH)
        outcome = handler.process_event(checkout_completed_event, PAYLOAD_HASH)

        assert outcome.processing_result == "duplicate"
        orchestrator.handle_webhook.assert_called_once()

    def test_duplicate_order_is_reported(
        self,
        handler: WebhookHandler,
        orchestrator: MagicMock,
        checkout_completed_event: dict[str, Any],
    ):
        orchestrator.handle_webhook.return_value = FulfillmentResult(
            success=True, duplicate=True, order_id="ORD-3F2A9C1B7D4E"
        )

        outcome = handler.process_event(checkout_completed_event, PAYLOAD_HASH)

        assert outcome.processing_result == "duplicate"
        assert outcome.order_id == "ORD-3F2A9C1B7D4E"

    def test_unhandled_type_is_skipped(
        self,
        handler: WebhookHandler,
        orchestrator: MagicMock,
        dynamo_table: Any,
    ):
        event = {"id": "evt_other", "type": "customer.created", "data": {"object": {}}}

        outcome = handler.process_event(event, PAYLOAD_HASH)

        assert outcome.processing_result == "skipped"
        orchestrator.handle_webhook.assert_not_called()
        assert _event_record(dynamo_table, "evt_other")["processing_result"] == "skipped"

    def test_unpaid_session_is_skipped(
        self,
        handler: WebhookHandler,
        orchestrator: MagicMock,
        checkout_completed_event: dict[str, Any],
    ):
        orchestrator.handle_webhook.return_value = FulfillmentResult(
            success=False, message="Payment status is PENDING, nothing to fulfill"
        )

        outcome = handler.process_event(checkout_completed_event, PAYLOAD_HASH)

        assert outcome.processing_result == "skipped"

    def test_unusable_metadata_is_rejected(
        self,
        handler: WebhookHandler,
        orchestrator: MagicMock,
        checkout_completed_event: dict[str, Any],
        dynamo_table: Any,
    ):
        orchestrator.handle_webhook.side_effect = WebhookError(code=ErrorCode.MISSING_USER_ID)

        outcome = handler.process_event(checkout_completed_event, PAYLOAD_HASH)

        assert outcome.processing_result == "rejected"
        record = _event_record(dynamo_table, "evt_test_checkout_completed_123")
        assert record["processing_result"] == "rejected"
        assert record["error_message"] == "User ID missing from payment metadata"

    def test_order_error_is_recorded_and_reprocessable(
        self,
        handler: WebhookHandler,
        orchestrator: MagicMock,
        checkout_completed_event: dict[str, Any],
        dynamo_table: Any,
    ):
        orchestrator.handle_webhook.side_effect = OrderError("Failed to save order")

        with pytest.raises(OrderError):
            handler.process_event(checkout_completed_event, PAYLOAD_HASH)

        assert _event_record(dynamo_table, "evt_test_checkout_completed_123")["processing_result"] == "error"
        assert handler.is_event_already_processed("evt_test_checkout_completed_123") is False

        orchestrator.handle_webhook.side_effect = None
        outcome = handler.process_event(checkout_completed_event, PAYLOAD_HASH)

        assert outcome.processing_result == "success"
