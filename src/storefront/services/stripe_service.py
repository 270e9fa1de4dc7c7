"""Stripe payment service for checkout sessions and status checks.

Provides integration with Stripe using the v8+ StripeClient pattern. The
client is injected; ``build_stripe_service`` assembles it from SSM-held
credentials with a bounded network timeout.
"""

import hashlib
import logging
import os
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from urllib.parse import urljoin, urlparse

import stripe
from stripe import StripeClient

from storefront.models.enums import PaymentStatus
from storefront.models.errors import (
    ErrorCode,
    NotFoundError,
    PaymentServiceError,
    WebhookError,
)
from storefront.models.payment import (
    PaymentItem,
    PaymentSessionRequest,
    PaymentSessionResult,
)

from .ssm_service import SSMServiceError, get_ssm_service

logger = logging.getLogger(__name__)

DEFAULT_PUBLIC_URL = "http://localhost:3000"
DEFAULT_CURRENCY = "eur"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_NETWORK_RETRIES = 2

# Session payment_status values that count as captured
PAID_SESSION_STATUSES = {"paid", "no_payment_required"}

# PaymentIntent statuses that will never capture without a new attempt
FAILED_INTENT_STATUSES = {"canceled", "requires_payment_method"}


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount to integer minor units (half-up)."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def session_payment_status(session: Any) -> PaymentStatus:
    """Map a checkout session to a payment status; expired sessions have failed."""
    if session.payment_status in PAID_SESSION_STATUSES:
        return PaymentStatus.PAID
    if session.status == "expired":
        return PaymentStatus.FAILED
    return PaymentStatus.PENDING


def _provider_details(e: stripe.StripeError) -> dict[str, Any]:
    error = getattr(e, "error", None)
    return {
        "provider_code": getattr(e, "code", None),
        "provider_type": getattr(error, "type", None),
        "decline_code": getattr(error, "decline_code", None),
        "http_status": getattr(e, "http_status", None),
    }


class StripeService:
    """Service for Stripe payment operations.

    Handles:
    - Checkout session creation
    - Session and PaymentIntent status lookups
    - Webhook signature validation

    Usage:
        stripe_svc = build_stripe_service()
        result = stripe_svc.create_session(request)
    """

    def __init__(
        self,
        client: StripeClient,
        *,
        webhook_secret: str | None = None,
        public_url: str | None = None,
        currency: str | None = None,
    ) -> None:
        """Initialize with an explicit Stripe client.

        Args:
            client: Configured StripeClient
            webhook_secret: Signing secret for webhook verification
            public_url: Storefront base URL for relative image paths.
                Defaults to STOREFRONT_PUBLIC_URL.
            currency: ISO currency for line items. Defaults to STOREFRONT_CURRENCY.
        """
        self._client = client
        self._webhook_secret = webhook_secret
        self._public_url = public_url or os.environ.get(
            "STOREFRONT_PUBLIC_URL", DEFAULT_PUBLIC_URL
        )
        self._currency = (
            currency or os.environ.get("STOREFRONT_CURRENCY", DEFAULT_CURRENCY)
        ).lower()

    def normalize_image_url(self, image_url: str | None) -> str | None:
        """Return an absolute image URL, or None if it cannot be made one.

        Absolute http(s) URLs pass through; other values are resolved
        against the storefront public URL.
        """
        if not image_url:
            return None

        parsed = urlparse(image_url)
        if parsed.scheme in ("http", "https"):
            return image_url if parsed.netloc else None

        base = self._public_url.rstrip("/") + "/"
        resolved = urljoin(base, image_url.lstrip("/"))
        resolved_parsed = urlparse(resolved)
        if resolved_parsed.scheme in ("http", "https") and resolved_parsed.netloc:
            return resolved

        logger.warning("Dropping unusable image URL: %s", image_url)
        return None

    def _line_item(self, item: PaymentItem) -> dict[str, Any]:
        product_data: dict[str, Any] = {"name": item.name}
        if item.description:
            product_data["description"] = item.description
        image = self.normalize_image_url(item.image_url)
        if image:
            product_data["images"] = [image]

        return {
            "price_data": {
                "currency": self._currency,
                "unit_amount": to_minor_units(item.price),
                "product_data": product_data,
            },
            "quantity": item.quantity,
        }

    def create_session(self, request: PaymentSessionRequest) -> PaymentSessionResult:
        """Create a Stripe Checkout session.

        The request metadata is attached to the session as-is, so callers
        embed anything the webhook needs before calling.

        Returns:
            PaymentSessionResult, success=False when Stripe returns no URL.

        Raises:
            PaymentServiceError: If Stripe rejects the request.
        """
        metadata = {"userId": request.user_id, **request.metadata}
        params: dict[str, Any] = {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [self._line_item(item) for item in request.items],
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
            "metadata": metadata,
        }

        try:
            logger.info(
                "Creating Stripe checkout session for user %s with %d items",
                request.user_id,
                len(request.items),
            )
            session = self._client.checkout.sessions.create(params=params)
        except stripe.StripeError as e:
            details = _provider_details(e)
            logger.error(
                "Stripe checkout session creation failed: %s (code: %s)",
                str(e),
                details["provider_code"],
            )
            raise PaymentServiceError(
                f"Stripe error: {getattr(e, 'user_message', None) or e}",
                code=ErrorCode.STRIPE_SESSION_ERROR,
                details=details,
            ) from e

        if not session.url:
            logger.warning("Checkout session %s returned without a URL", session.id)
            return PaymentSessionResult(
                success=False,
                session_id=session.id,
                error="Unable to create the payment URL",
            )

        logger.info("Checkout session created: %s", session.id)
        return PaymentSessionResult(success=True, session_id=session.id, url=session.url)

    def retrieve_session(self, session_id: str) -> Any:
        """Fetch a checkout session from Stripe."""
        return self._client.checkout.sessions.retrieve(session_id)

    def retrieve_payment_intent(self, payment_intent_id: str) -> Any:
        """Fetch a PaymentIntent from Stripe."""
        return self._client.payment_intents.retrieve(payment_intent_id)

    def verify_status(self, session_id: str) -> PaymentStatus:
        """Get the payment status of a checkout session.

        Raises:
            PaymentServiceError: If the session cannot be retrieved.
        """
        try:
            session = self.retrieve_session(session_id)
        except stripe.StripeError as e:
            logger.error("Failed to verify session %s: %s", session_id, e)
            raise PaymentServiceError(
                f"Failed to verify payment: {e}",
                code=ErrorCode.STRIPE_VERIFY_ERROR,
                details={"session_id": session_id, **_provider_details(e)},
            ) from e

        return session_payment_status(session)

    def fetch_legacy_status(self, identifier: str) -> PaymentStatus:
        """Resolve a status from either a PaymentIntent or a session ID.

        Older clients hold a PaymentIntent ID rather than a session ID, so
        the PaymentIntent lookup is tried first.

        Raises:
            NotFoundError: If neither lookup finds the identifier.
        """
        try:
            intent = self.retrieve_payment_intent(identifier)
        except stripe.StripeError as intent_error:
            logger.info(
                "No PaymentIntent %s (%s), trying checkout session",
                identifier,
                getattr(intent_error, "code", None),
            )
        else:
            if intent.status == "succeeded":
                return PaymentStatus.PAID
            if intent.status in FAILED_INTENT_STATUSES:
                return PaymentStatus.FAILED
            return PaymentStatus.PENDING

        try:
            session = self.retrieve_session(identifier)
        except stripe.StripeError as e:
            raise NotFoundError(
                "Payment not found",
                details={"identifier": identifier},
            ) from e

        return session_payment_status(session)

    def verify_webhook_signature(self, payload: bytes, signature: str) -> dict:
        """Verify a webhook signature and parse the event.

        Args:
            payload: Raw request body bytes.
            signature: Stripe-Signature header value.

        Returns:
            Parsed Stripe event dictionary.

        Raises:
            PaymentServiceError: If no webhook secret is configured.
            WebhookError: If the signature is invalid.
        """
        if not self._webhook_secret:
            raise PaymentServiceError(
                "Webhook secret is not configured",
                code=ErrorCode.PAYMENT_SERVICE_ERROR,
            )

        try:
            event = stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except (stripe.SignatureVerificationError, ValueError) as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise WebhookError(code=ErrorCode.INVALID_WEBHOOK_SIGNATURE) from e

        logger.info("Webhook signature verified for event: %s", event["id"])
        return event.to_dict() if hasattr(event, "to_dict") else dict(event)

    @staticmethod
    def compute_payload_hash(payload: bytes) -> str:
        """Compute SHA-256 hash of webhook payload for the audit log."""
        return hashlib.sha256(payload).hexdigest()


def build_stripe_client(secret_key: str) -> StripeClient:
    """Create a StripeClient with bounded timeouts and retries.

    Reads STRIPE_TIMEOUT_SECONDS and STRIPE_MAX_NETWORK_RETRIES.
    """
    timeout = float(os.environ.get("STRIPE_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS))
    retries = int(os.environ.get("STRIPE_MAX_NETWORK_RETRIES", DEFAULT_MAX_NETWORK_RETRIES))
    return StripeClient(
        secret_key,
        http_client=stripe.RequestsClient(timeout=timeout),
        max_network_retries=retries,
    )


def build_stripe_service(environment: str | None = None) -> StripeService:
    """Build a StripeService from SSM credentials.

    Args:
        environment: Environment name (dev, prod). Defaults to ENVIRONMENT env var.

    Raises:
        PaymentServiceError: If credentials cannot be retrieved.
    """
    env = environment or os.environ.get("ENVIRONMENT", "dev")
    ssm = get_ssm_service()
    try:
        secret_key = ssm.get_parameter(f"/storefront/{env}/stripe/secret_key")
        webhook_secret = ssm.get_parameter(f"/storefront/{env}/stripe/webhook_secret")
    except SSMServiceError as e:
        raise PaymentServiceError(f"Failed to initialize Stripe client: {e}") from e

    logger.info("Stripe client initialized for environment: %s", env)
    return StripeService(build_stripe_client(secret_key), webhook_secret=webhook_secret)
