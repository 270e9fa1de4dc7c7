"""Payment models for checkout sessions and provider notifications."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from .enums import PaymentStatus


class PaymentItem(BaseModel):
    """Line-item snapshot taken at checkout time.

    Decoupled from the live catalog so later price or description edits
    cannot change a paid order. Bounds are enforced by the validation
    service so that every violation can be reported at once.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Catalog product ID", examples=["p1"])
    name: str = Field(..., description="Product name at checkout time")
    price: Decimal = Field(..., description="Unit price in major units", examples=["1200.00"])
    quantity: int = Field(..., description="Units purchased (1-1000)")
    description: str | None = Field(default=None)
    image_url: str | None = Field(default=None, description="Absolute or site-relative image URL")

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


class PaymentSessionRequest(BaseModel):
    """Data needed to open a hosted checkout session."""

    items: list[PaymentItem] = Field(default_factory=list)
    user_id: str = Field(default="", description="Customer ID")
    user_email: str = Field(default="", description="Customer email address")
    success_url: str = Field(default="", description="Redirect after payment")
    cancel_url: str = Field(default="", description="Redirect after cancellation")
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def total_amount(self) -> Decimal:
        """Sum of price * quantity over all items."""
        return sum((item.subtotal for item in self.items), Decimal("0"))


class PaymentSessionResult(BaseModel):
    """Result of a checkout session creation."""

    success: bool
    session_id: str | None = None
    url: str | None = Field(
        default=None,
        description="Hosted checkout URL to redirect the customer to",
        examples=["https://checkout.stripe.com/c/pay/cs_test_abc123"],
    )
    error: str | None = None


class PaymentStatusResult(BaseModel):
    """Result of a client-triggered payment status check."""

    session_id: str
    status: PaymentStatus
    success: bool
    message: str


class WebhookEvent(BaseModel):
    """Provider notification about a checkout session, already verified.

    Delivered at least once, possibly duplicated and out of order.
    """

    session_id: str
    payment_status: PaymentStatus
    amount_total: int | None = Field(default=None, description="Captured amount in minor units")
    currency: str | None = Field(default=None)
    customer_email: str | None = Field(default=None)
    metadata: dict[str, str] | None = Field(default=None)
    payment_intent_id: str | None = Field(default=None)
    event_id: str | None = Field(default=None, description="Provider event ID (evt_xxx)")
