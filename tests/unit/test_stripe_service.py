"""Unit tests for StripeService.

All Stripe interactions are mocked through an injected client.
"""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import stripe

from storefront.models import (
    ErrorCode,
    NotFoundError,
    PaymentItem,
    PaymentServiceError,
    PaymentSessionRequest,
    PaymentStatus,
    WebhookError,
)
from storefront.services.ssm_service import SSMServiceError
from storefront.services.stripe_service import (
    StripeService,
    build_stripe_service,
    to_minor_units,
)


# === Test Configuration ===

TEST_WEBHOOK_SECRET = "whsec_test_secret123"


def _request(**overrides) -> PaymentSessionRequest:
    data = {
        "items": [
            PaymentItem(
                id="p1",
                name="Scope 4-16x44",
                price=Decimal("1200.00"),
                quantity=1,
                description="Hunting scope",
                image_url="/images/scope.jpg",
            ),
            PaymentItem(id="p2", name="Bipod", price=Decimal("19.995"), quantity=3),
        ],
        "user_id": "u1",
        "user_email": "buyer@example.com",
        "success_url": "https://shop.example.com/success",
        "cancel_url": "https://shop.example.com/cart",
        "metadata": {"contextVersion": "2"},
    }
    data.update(overrides)
    return PaymentSessionRequest(**data)


def _session(payment_status: str = "unpaid", status: str = "open") -> MagicMock:
    session = MagicMock()
    session.payment_status = payment_status
    session.status = status
    return session


class TestMinorUnits:
    """Test amount conversion."""

    @pytest.mark.parametrize(
        ("amount", "expected"),
        [
            (Decimal("1200.00"), 120000),
            (Decimal("19.995"), 2000),
            (Decimal("0.01"), 1),
            (Decimal("10.004"), 1000),
        ],
    )
    def test_rounds_half_up(self, amount, expected):
        assert to_minor_units(amount) == expected


class TestNormalizeImageUrl:
    """Test image URL normalization."""

    def test_absolute_url_passes_through(self, stripe_service: StripeService):
        url = "https://cdn.example.com/a.jpg"
        assert stripe_service.normalize_image_url(url) == url

    def test_relative_path_resolved_against_public_url(self, stripe_service: StripeService):
        assert (
            stripe_service.normalize_image_url("/images/scope.jpg")
            == "https://shop.example.com/images/scope.jpg"
        )

    def test_empty_is_dropped(self, stripe_service: StripeService):
        assert stripe_service.normalize_image_url(None) is None
        assert stripe_service.normalize_image_url("") is None

    def test_scheme_without_host_is_dropped(self, stripe_service: StripeService):
        assert stripe_service.normalize_image_url("https:///nohost.jpg") is None


class TestCreateSession:
    """Test checkout session creation."""

    def test_creates_session_with_line_items(
        self,
        stripe_service: StripeService,
        mock_stripe_client: MagicMock,
    ):
        result = stripe_service.create_session(_request())

        assert result.success is True
        assert result.session_id == "cs_test_session_abc"
        assert result.url.startswith("https://checkout.stripe.com/")

        params = mock_stripe_client.checkout.sessions.create.call_args.kwargs["params"]
        assert params["mode"] == "payment"
        assert params["success_url"] == "https://shop.example.com/success"
        assert params["metadata"] == {"userId": "u1", "contextVersion": "2"}

        first, second = params["line_items"]
        assert first["quantity"] == 1
        assert first["price_data"]["currency"] == "eur"
        assert first["price_data"]["unit_amount"] == 120000
        assert first["price_data"]["product_data"] == {
            "name": "Scope 4-16x44",
            "description": "Hunting scope",
            "images": ["https://shop.example.com/images/scope.jpg"],
        }
        assert second["price_data"]["unit_amount"] == 2000
        assert "images" not in second["price_data"]["product_data"]

    def test_missing_url_is_unsuccessful(
        self,
        stripe_service: StripeService,
        mock_stripe_client: MagicMock,
    ):
        mock_stripe_client.checkout.sessions.create.return_value.url = None

        result = stripe_service.create_session(_request())

        assert result.success is False
        assert result.error

    def test_stripe_error_raises_payment_service_error(
        self,
        stripe_service: StripeService,
        mock_stripe_client: MagicMock,
    ):
        mock_stripe_client.checkout.sessions.create.side_effect = stripe.InvalidRequestError(
            "Invalid integer", param="unit_amount", code="parameter_invalid_integer"
        )

        with pytest.raises(PaymentServiceError) as exc_info:
            stripe_service.create_session(_request())

        assert exc_info.value.code == ErrorCode.STRIPE_SESSION_ERROR.value
        assert exc_info.value.status_code == 502
        assert exc_info.value.provider_code == "parameter_invalid_integer"


class TestVerifyStatus:
    """Test session status mapping."""

    @pytest.mark.parametrize(
        ("payment_status", "status", "expected"),
        [
            ("paid", "complete", PaymentStatus.PAID),
            ("no_payment_required", "complete", PaymentStatus.PAID),
            ("unpaid", "expired", PaymentStatus.FAILED),
            ("unpaid", "open", PaymentStatus.PENDING),
        ],
    )
    def test_maps_session_status(
        self,
        stripe_service: StripeService,
        mock_stripe_client: MagicMock,
        payment_status,
        status,
        expected,
    ):
        mock_stripe_client.checkout.sessions.retrieve.return_value = _session(payment_status, status)
        assert stripe_service.verify_status("cs_test") == expected

    def test_stripe_error_raises(self, stripe_service: StripeService, mock_stripe_client: MagicMock):
        mock_stripe_client.checkout.sessions.retrieve.side_effect = stripe.APIConnectionError("down")

        with pytest.raises(PaymentServiceError) as exc_info:
            stripe_service.verify_status("cs_test")

        assert exc_info.value.code == ErrorCode.STRIPE_VERIFY_ERROR.value


class TestFetchLegacyStatus:
    """Test PaymentIntent-then-session lookup."""

    def test_succeeded_payment_intent_is_paid(
        self, stripe_service: StripeService, mock_stripe_client: MagicMock
    ):
        mock_stripe_client.payment_intents.retrieve.return_value = MagicMock(status="succeeded")
        assert stripe_service.fetch_legacy_status("pi_123") == PaymentStatus.PAID
        mock_stripe_client.checkout.sessions.retrieve.assert_not_called()

    def test_canceled_payment_intent_is_failed(
        self, stripe_service: StripeService, mock_stripe_client: MagicMock
    ):
        mock_stripe_client.payment_intents.retrieve.return_value = MagicMock(status="canceled")
        assert stripe_service.fetch_legacy_status("pi_123") == PaymentStatus.FAILED

    def test_falls_back_to_session(self, stripe_service: StripeService, mock_stripe_client: MagicMock):
        mock_stripe_client.payment_intents.retrieve.side_effect = stripe.InvalidRequestError(
            "No such payment_intent", param="id", code="resource_missing"
        )
        mock_stripe_client.checkout.sessions.retrieve.return_value = _session("paid", "complete")

        assert stripe_service.fetch_legacy_status("cs_test") == PaymentStatus.PAID

    def test_expired_session_fallback_is_failed(
        self, stripe_service: StripeService, mock_stripe_client: MagicMock
    ):
        mock_stripe_client.payment_intents.retrieve.side_effect = stripe.InvalidRequestError(
            "No such payment_intent", param="id", code="resource_missing"
        )
        mock_stripe_client.checkout.sessions.retrieve.return_value = _session("unpaid", "expired")

        assert stripe_service.fetch_legacy_status("cs_test") == PaymentStatus.FAILED

    def test_raises_not_found_when_both_miss(
        self, stripe_service: StripeService, mock_stripe_client: MagicMock
    ):
        missing = stripe.InvalidRequestError("No such object", param="id", code="resource_missing")
        mock_stripe_client.payment_intents.retrieve.side_effect = missing
        mock_stripe_client.checkout.sessions.retrieve.side_effect = missing

        with pytest.raises(NotFoundError):
            stripe_service.fetch_legacy_status("nope")


class TestWebhookSignature:
    """Test webhook signature verification."""

    def test_valid_signature_returns_event(self, stripe_service: StripeService):
        event = {"id": "evt_123", "type": "checkout.session.completed"}
        with patch("stripe.Webhook.construct_event", return_value=event) as mock_construct:
            result = stripe_service.verify_webhook_signature(b"{}", "t=1,v1=abc")

        assert result["id"] == "evt_123"
        mock_construct.assert_called_once_with(b"{}", "t=1,v1=abc", TEST_WEBHOOK_SECRET)

    def test_invalid_signature_raises_webhook_error(self, stripe_service: StripeService):
        with patch(
            "stripe.Webhook.construct_event",
            side_effect=stripe.SignatureVerificationError("bad", "t=1,v1=abc"),
        ):
            with pytest.raises(WebhookError) as exc_info:
                stripe_service.verify_webhook_signature(b"{}", "t=1,v1=abc")

        assert exc_info.value.code == ErrorCode.INVALID_WEBHOOK_SIGNATURE.value

    def test_missing_secret_raises(self, mock_stripe_client: MagicMock):
        service = StripeService(mock_stripe_client)
        with pytest.raises(PaymentServiceError):
            service.verify_webhook_signature(b"{}", "t=1,v1=abc")

    def test_payload_hash_is_sha256(self):
        assert len(StripeService.compute_payload_hash(b"payload")) == 64


class TestBuildStripeService:
    """Test construction from SSM credentials."""

    def test_reads_secrets_from_ssm(self):
        with patch("storefront.services.stripe_service.get_ssm_service") as mock_get_ssm:
            mock_get_ssm.return_value.get_parameter.side_effect = lambda name: {
                "/storefront/dev/stripe/secret_key": "sk_test_abc",
                "/storefront/dev/stripe/webhook_secret": TEST_WEBHOOK_SECRET,
            }[name]

            service = build_stripe_service("dev")

        assert isinstance(service, StripeService)

    def test_ssm_failure_raises_payment_service_error(self):
        with patch("storefront.services.stripe_service.get_ssm_service") as mock_get_ssm:
            mock_get_ssm.return_value.get_parameter.side_effect = SSMServiceError("missing")

            with pytest.raises(PaymentServiceError) as exc_info:
                build_stripe_service("dev")

        assert "Failed to initialize Stripe client" in exc_info.value.message
