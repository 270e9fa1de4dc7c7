"""Clears a user's abandoned carts once they have paid."""

import datetime as dt
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from storefront.models.cart import AbandonedCart, CartReconciliationSummary
from storefront.utils.logging import get_logger

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = get_logger(__name__)

STORE_ERRORS = (ClientError, BotoCoreError)


class CartReconciler:
    """Marks abandoned carts recovered, then deletes them."""

    CARTS_TABLE = "abandoned-carts"
    USER_INDEX = "user_id-index"

    def __init__(self, db: "DynamoDBService") -> None:
        self.db = db

    def list_by_user(self, user_id: str, include_recovered: bool = False) -> list[AbandonedCart]:
        """List a user's abandoned carts.

        Args:
            user_id: Customer ID
            include_recovered: Also return carts already marked recovered
        """
        filter_expression = None if include_recovered else Attr("recovered").ne(True)
        items = self.db.query_by_gsi(
            self.CARTS_TABLE,
            self.USER_INDEX,
            "user_id",
            user_id,
            filter_expression=filter_expression,
        )
        return [self._item_to_cart(item) for item in items]

    def mark_recovered(self, cart_id: str) -> None:
        now = dt.datetime.now(dt.UTC).isoformat()
        self.db.update_item(
            self.CARTS_TABLE,
            {"cart_id": cart_id},
            "SET recovered = :recovered, recovered_at = :now, last_updated = :now",
            {":recovered": True, ":now": now},
        )

    def delete_by_user(self, user_id: str) -> int:
        """Delete every cart of a user.

        Returns:
            Number of carts deleted
        """
        carts = self.list_by_user(user_id, include_recovered=True)
        for cart in carts:
            self.db.delete_item(self.CARTS_TABLE, {"cart_id": cart.id})
        return len(carts)

    def reconcile_user(self, user_id: str) -> CartReconciliationSummary:
        """Mark the user's carts recovered, then delete them. Never raises.

        A user without carts yields a zero-count summary.
        """
        summary = CartReconciliationSummary(user_id=user_id)

        try:
            for cart in self.list_by_user(user_id):
                try:
                    self.mark_recovered(cart.id)
                    summary.marked_recovered += 1
                except STORE_ERRORS as e:
                    logger.error("Failed to mark cart %s recovered: %s", cart.id, e)
                    summary.errors.append(f"mark_recovered {cart.id}: {e}")
        except STORE_ERRORS as e:
            logger.error("Failed to list abandoned carts for %s: %s", user_id, e)
            summary.errors.append(f"list_by_user: {e}")

        try:
            summary.deleted = self.delete_by_user(user_id)
        except STORE_ERRORS as e:
            logger.error("Failed to delete abandoned carts for %s: %s", user_id, e)
            summary.errors.append(f"delete_by_user: {e}")

        logger.info(
            "Abandoned carts for %s: %d recovered, %d deleted",
            user_id,
            summary.marked_recovered,
            summary.deleted,
        )
        return summary

    def _item_to_cart(self, item: dict[str, Any]) -> AbandonedCart:
        """Convert DynamoDB item to AbandonedCart model."""
        return AbandonedCart(
            id=item["cart_id"],
            user_id=item["user_id"],
            user_email=item.get("user_email"),
            items=list(item.get("items", [])),
            total=Decimal(str(item.get("total", 0))),
            created_at=dt.datetime.fromisoformat(item["created_at"]),
            last_updated=dt.datetime.fromisoformat(item.get("last_updated", item["created_at"])),
            reminder_sent=bool(item.get("reminder_sent", False)),
            reminder_count=int(item.get("reminder_count", 0)),
            recovered=bool(item.get("recovered", False)),
            recovered_at=(
                dt.datetime.fromisoformat(item["recovered_at"])
                if item.get("recovered_at")
                else None
            ),
        )
