"""Fulfillment context and result models.

The checkout session is the only place the pipeline can stash the cart
snapshot between ``initiate_payment`` and the stateless webhook, and the
provider only offers a string-keyed metadata map with short values. The
``FulfillmentContext`` owns that encoding:

- ``contextVersion`` identifies the layout so future item-shape changes do
  not silently break parsing on sessions still in flight.
- Version 2 splits the items JSON over ``items_0..items_{n-1}`` keys, with
  the chunk count in ``itemsChunks``.
- Version 1 (no ``contextVersion`` key) stores the whole array in
  ``itemsJson`` and is still readable.
"""

import json
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import BaseModel, Field

from .cart import CartReconciliationSummary
from .enums import FulfillmentStage
from .notification import NotificationOutcome
from .payment import PaymentItem, PaymentSessionRequest

CONTEXT_VERSION = "2"
LEGACY_CONTEXT_VERSION = "1"

# Stripe caps metadata values at 500 characters
ITEMS_CHUNK_SIZE = 480

_ITEM_FIELDS = ("id", "name", "price", "quantity")
_MIN_ITEM_PRICE = Decimal("0.01")


class ContextParseError(ValueError):
    """Raised when the item snapshot in session metadata cannot be decoded."""


class FulfillmentContext(BaseModel):
    """Everything the webhook needs to rebuild an order without the cart."""

    user_id: str | None = None
    user_email: str | None = None
    items: list[PaymentItem] = Field(default_factory=list)
    total_amount: Decimal = Decimal("0")
    items_count: int = 0

    @classmethod
    def from_request(cls, request: PaymentSessionRequest) -> "FulfillmentContext":
        return cls(
            user_id=request.user_id,
            user_email=request.user_email,
            items=list(request.items),
            total_amount=request.total_amount,
            items_count=len(request.items),
        )

    def to_metadata(self) -> dict[str, str]:
        """Encode into provider metadata (current version)."""
        items_json = json.dumps(
            [
                {
                    "id": item.id,
                    "name": item.name,
                    "price": str(item.price),
                    "quantity": item.quantity,
                }
                for item in self.items
            ],
            separators=(",", ":"),
        )
        chunks = [
            items_json[i : i + ITEMS_CHUNK_SIZE]
            for i in range(0, len(items_json), ITEMS_CHUNK_SIZE)
        ]

        metadata: dict[str, str] = {
            "contextVersion": CONTEXT_VERSION,
            "totalAmount": str(self.total_amount),
            "itemsCount": str(self.items_count),
            "itemsChunks": str(len(chunks)),
        }
        if self.user_id:
            metadata["userId"] = self.user_id
        if self.user_email:
            metadata["userEmail"] = self.user_email
        for index, chunk in enumerate(chunks):
            metadata[f"items_{index}"] = chunk
        return metadata

    @classmethod
    def from_metadata(cls, metadata: dict[str, str]) -> "FulfillmentContext":
        """Decode provider metadata.

        Missing item keys decode to an empty item list. Anything present
        but undecodable raises ``ContextParseError`` so callers can tell a
        corrupted snapshot apart from an empty one.

        Raises:
            ContextParseError: Unknown version or malformed items.
        """
        version = metadata.get("contextVersion", LEGACY_CONTEXT_VERSION)

        if version == LEGACY_CONTEXT_VERSION:
            raw_items = metadata.get("itemsJson")
        elif version == CONTEXT_VERSION:
            raw_items = _join_chunks(metadata)
        else:
            raise ContextParseError(f"Unsupported context version: {version}")

        items = _parse_items(raw_items) if raw_items else []

        return cls(
            user_id=metadata.get("userId") or None,
            user_email=metadata.get("userEmail") or None,
            items=items,
            total_amount=_parse_decimal(metadata.get("totalAmount")),
            items_count=len(items),
        )


def _join_chunks(metadata: dict[str, str]) -> str | None:
    count_raw = metadata.get("itemsChunks")
    if count_raw is None:
        return None
    try:
        count = int(count_raw)
        return "".join(metadata[f"items_{index}"] for index in range(count))
    except (ValueError, KeyError) as e:
        raise ContextParseError(f"Item chunks incomplete: {e}") from e


def _parse_items(raw: str) -> list[PaymentItem]:
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ContextParseError(f"Items JSON is invalid: {e}") from e

    if not isinstance(parsed, list):
        raise ContextParseError("Items JSON is not an array")

    items: list[PaymentItem] = []
    for index, entry in enumerate(parsed):
        if not isinstance(entry, dict) or any(f not in entry for f in _ITEM_FIELDS):
            raise ContextParseError(f"Item {index} is missing required fields")
        try:
            item = PaymentItem(
                id=str(entry["id"]),
                name=str(entry["name"]),
                price=Decimal(str(entry["price"])),
                quantity=int(entry["quantity"]),
                description=entry.get("description"),
                image_url=entry.get("imageUrl"),
            )
        except (InvalidOperation, TypeError, ValueError) as e:
            raise ContextParseError(f"Item {index} has invalid values: {e}") from e
        # Stock is only ever decremented, so quantities must be positive
        if item.quantity < 1 or not item.price.is_finite() or item.price < _MIN_ITEM_PRICE:
            raise ContextParseError(
                f"Item {index} is out of range: price {item.price}, quantity {item.quantity}"
            )
        items.append(item)
    return items


def _parse_decimal(value: str | None) -> Decimal:
    if not value:
        return Decimal("0")
    try:
        return Decimal(value)
    except InvalidOperation:
        return Decimal("0")


class StockAdjustmentFailure(BaseModel):
    """One product whose stock could not be decremented."""

    product_id: str
    quantity: int
    error: str


class StockAdjustmentSummary(BaseModel):
    """Outcome of decrementing stock for an order's items."""

    requested: int = 0
    adjusted: list[str] = Field(default_factory=list)
    failures: list[StockAdjustmentFailure] = Field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return not self.failures


class FulfillmentResult(BaseModel):
    """Result of one webhook fulfillment attempt."""

    success: bool
    order_id: str | None = None
    message: str | None = None
    error: str | None = None
    duplicate: bool = False
    stages: list[FulfillmentStage] = Field(default_factory=list)
    inventory: StockAdjustmentSummary | None = None
    cart: CartReconciliationSummary | None = None
    notification: NotificationOutcome | None = None

    def summary(self) -> dict[str, Any]:
        """Compact view for logs and HTTP acknowledgements."""
        return {
            "success": self.success,
            "order_id": self.order_id,
            "duplicate": self.duplicate,
            "stages": [stage.value for stage in self.stages],
        }
