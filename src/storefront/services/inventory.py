"""Stock decrements against the product catalog.

Products are keyed by ``product_id``. Carts created before the catalog
migration reference products by their old numeric ID, which is kept on
each product as ``legacy_id`` and indexed by ``legacy_id-index``.
"""

import datetime as dt
from typing import TYPE_CHECKING, Any

from storefront.models.errors import NotFoundError
from storefront.models.fulfillment import StockAdjustmentFailure, StockAdjustmentSummary
from storefront.models.payment import PaymentItem
from storefront.utils.logging import get_logger

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = get_logger(__name__)


class InventoryAdjuster:
    """Decrements product stock after a paid order, flooring at zero."""

    PRODUCTS_TABLE = "products"
    LEGACY_INDEX = "legacy_id-index"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def resolve_product(self, product_id: str) -> dict[str, Any] | None:
        """Find a product by its key, falling back to its legacy numeric ID."""
        item = self.db.get_item(self.PRODUCTS_TABLE, {"product_id": product_id})
        if item:
            return item

        if product_id.isdigit():
            matches = self.db.query_by_gsi(
                self.PRODUCTS_TABLE,
                self.LEGACY_INDEX,
                "legacy_id",
                int(product_id),
            )
            if matches:
                return matches[0]

        return None

    def decrement_one(self, product_id: str, quantity: int) -> int:
        """Decrement one product's stock.

        Read-modify-write without a condition; concurrent orders may
        over-sell.

        Returns:
            The new stock quantity.

        Raises:
            NotFoundError: If the product cannot be resolved.
        """
        product = self.resolve_product(product_id)
        if product is None:
            raise NotFoundError("Product not found", details={"product_id": product_id})

        current = int(product.get("stock_quantity", 0))
        new_stock = max(0, current - quantity)

        self.db.update_item(
            self.PRODUCTS_TABLE,
            {"product_id": product["product_id"]},
            "SET stock_quantity = :stock, updated_at = :now",
            {
                ":stock": new_stock,
                ":now": dt.datetime.now(dt.UTC).isoformat(),
            },
        )
        logger.info(
            "Stock for %s decremented by %d: %d -> %d",
            product["product_id"],
            quantity,
            current,
            new_stock,
        )
        return new_stock

    def decrement_many(self, items: list[PaymentItem]) -> StockAdjustmentSummary:
        """Decrement stock for every item. Never raises.

        Each item is attempted independently. Any error, including a
        malformed catalog row, is recorded as a failure for that item only.
        """
        summary = StockAdjustmentSummary(requested=len(items))

        for item in items:
            try:
                self.decrement_one(item.id, item.quantity)
                summary.adjusted.append(item.id)
            except Exception as e:
                logger.exception("Failed to decrement stock for %s", item.id)
                summary.failures.append(
                    StockAdjustmentFailure(product_id=item.id, quantity=item.quantity, error=str(e))
                )

        logger.info(
            "Stock update: %d succeeded, %d failed",
            len(summary.adjusted),
            len(summary.failures),
        )
        return summary
