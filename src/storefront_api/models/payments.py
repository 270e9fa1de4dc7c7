"""API models for payment and webhook endpoints.

Shapes are checked here; business bounds (amounts, quantities, email,
URLs) are enforced by the validation service so every violation is
reported in one response.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from storefront.models.payment import PaymentItem, PaymentSessionRequest


class CheckoutItem(BaseModel):
    """One cart line sent by the client."""

    id: str = Field(..., description="Catalog product ID", examples=["p1"])
    name: str = Field(..., description="Product name", examples=["Scope 4-16x44"])
    price: Decimal = Field(..., description="Unit price in major units", examples=[1200.0])
    quantity: int = Field(..., description="Units (1-1000)", examples=[1])
    description: str | None = None
    image_url: str | None = Field(default=None, examples=["/images/scope.jpg"])


class CheckoutRequest(BaseModel):
    """Request to open a checkout session."""

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "items": [{"id": "p1", "name": "Scope 4-16x44", "price": 1200.0, "quantity": 1}],
                    "user_id": "u1",
                    "user_email": "buyer@example.com",
                    "success_url": "https://shop.example.com/checkout/success",
                    "cancel_url": "https://shop.example.com/cart",
                }
            ]
        },
    )

    items: list[CheckoutItem] = Field(default_factory=list)
    user_id: str = Field(default="", description="Customer ID")
    user_email: str = Field(default="", description="Customer email")
    success_url: str = Field(default="", description="Redirect after payment")
    cancel_url: str = Field(default="", description="Redirect after cancellation")
    metadata: dict[str, str] = Field(
        default_factory=dict,
        description="Extra session metadata (e.g. firstName, lastName)",
    )

    def to_session_request(self) -> PaymentSessionRequest:
        return PaymentSessionRequest(
            items=[PaymentItem(**item.model_dump()) for item in self.items],
            user_id=self.user_id,
            user_email=self.user_email,
            success_url=self.success_url,
            cancel_url=self.cancel_url,
            metadata=self.metadata,
        )


class WebhookResponse(BaseModel):
    """Standard webhook response."""

    received: bool
    event_id: str | None = None
    event_type: str | None = None
    processing_result: str  # "success", "duplicate", "skipped", "rejected", "error"
    message: str | None = None
    order_id: str | None = None
