"""Order model - the durable record of a paid checkout."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from .enums import OrderStatus, PaymentMethod
from .payment import PaymentItem

# Transitions the fulfillment and shipping workflow may apply
ALLOWED_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.FAILED, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
    OrderStatus.FAILED: set(),
}


def is_transition_allowed(current: OrderStatus, new: OrderStatus) -> bool:
    """Return True when an order may move from ``current`` to ``new``."""
    return new in ALLOWED_TRANSITIONS.get(current, set())


class OrderCreate(BaseModel):
    """Data required to create an order. The store assigns id and timestamps."""

    user_id: str
    user_email: str
    items: list[PaymentItem]
    total_amount: Decimal
    currency: str = "eur"
    status: OrderStatus = OrderStatus.PAID
    payment_method: PaymentMethod = PaymentMethod.STRIPE
    stripe_session_id: str
    payment_intent_id: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)


class Order(BaseModel):
    """A customer order, keyed by a generated ID (never the session ID)."""

    id: str = Field(..., description="Generated order ID", examples=["ORD-3F2A9C1B7D4E"])
    user_id: str
    user_email: str
    items: list[PaymentItem]
    total_amount: Decimal = Field(..., description="Captured amount in major units")
    currency: str
    status: OrderStatus
    payment_method: PaymentMethod
    stripe_session_id: str
    payment_intent_id: str | None = None
    tracking_number: str | None = None
    shipped_at: datetime | None = None
    estimated_delivery_date: datetime | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
