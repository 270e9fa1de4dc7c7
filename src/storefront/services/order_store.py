"""Order persistence in DynamoDB.

Orders are keyed by a generated ID. A separate ``order-sessions`` table
holds one claim per Stripe checkout session. The claim is conditional and
is written in the same transaction as the order, so a redelivered or
concurrent webhook can never create a second order for the same payment,
and a failed write never leaves a claim without its order.
"""

import datetime as dt
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from botocore.exceptions import BotoCoreError, ClientError

from storefront.models.enums import OrderStatus, PaymentMethod
from storefront.models.errors import ErrorCode, NotFoundError, OrderError
from storefront.models.order import Order, OrderCreate, is_transition_allowed
from storefront.models.payment import PaymentItem
from storefront.utils.logging import get_logger, log_payment_operation

if TYPE_CHECKING:
    from .dynamodb import DynamoDBService

logger = get_logger(__name__)

STORE_ERRORS = (ClientError, BotoCoreError)


class DuplicateOrderError(OrderError):
    """The checkout session already produced an order."""

    def __init__(self, session_id: str, order_id: str | None) -> None:
        super().__init__(
            f"Order already exists for session {session_id}",
            details={"session_id": session_id, "order_id": order_id},
        )
        self.session_id = session_id
        self.order_id = order_id


def strip_none(value: Any) -> Any:
    """Recursively drop None values from dicts and lists.

    Falsy but populated values (0, "", False, empty containers) are kept.
    """
    if isinstance(value, dict):
        return {k: strip_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [strip_none(v) for v in value if v is not None]
    return value


class OrderStore:
    """Service for creating, reading and transitioning orders."""

    ORDERS_TABLE = "orders"
    SESSIONS_TABLE = "order-sessions"
    USER_INDEX = "user_id-index"

    def __init__(self, db: "DynamoDBService") -> None:
        """Initialize order store.

        Args:
            db: DynamoDB service instance
        """
        self.db = db

    def _generate_order_id(self) -> str:
        """Generate a unique order ID like ORD-3F2A9C1B7D4E."""
        return f"ORD-{uuid.uuid4().hex[:12].upper()}"

    # Session claims

    def _session_claim(self, session_id: str) -> dict[str, Any] | None:
        return self.db.get_item(
            self.SESSIONS_TABLE,
            {"stripe_session_id": session_id},
            consistent_read=True,
        )

    # Operations

    def create(self, data: OrderCreate) -> Order:
        """Create an order together with the claim on its checkout session.

        Both records go in one transaction: either the session is claimed
        and the order exists, or neither was written and a retry starts
        from scratch.

        Args:
            data: Order creation data

        Returns:
            Created Order

        Raises:
            DuplicateOrderError: If the session already has an order.
            OrderError: If the store fails or cancels the write.
        """
        order_id = self._generate_order_id()
        now = dt.datetime.now(dt.UTC)
        order = Order(
            id=order_id,
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        )
        session_id = data.stripe_session_id
        claim = {
            "stripe_session_id": session_id,
            "order_id": order_id,
            "claimed_at": now.isoformat(),
        }

        try:
            written = self.db.transact_write(
                [
                    self.db.put_request(
                        self.SESSIONS_TABLE,
                        claim,
                        condition_expression="attribute_not_exists(stripe_session_id)",
                    ),
                    self.db.put_request(self.ORDERS_TABLE, self._order_to_item(order)),
                ]
            )
            existing = None if written else self._session_claim(session_id)
        except STORE_ERRORS as e:
            raise OrderError(
                f"Failed to save order: {e}",
                details={"order_id": order_id, "session_id": session_id},
            ) from e

        if not written:
            if existing:
                raise DuplicateOrderError(session_id, existing.get("order_id"))
            # Cancelled by a conflicting write rather than an existing claim
            raise OrderError(
                "Order write was cancelled, retry the event",
                details={"order_id": order_id, "session_id": session_id},
            )

        log_payment_operation(
            logger,
            "create_order",
            order_id=order_id,
            session_id=data.stripe_session_id,
            user_id=data.user_id,
            amount=data.total_amount,
            status=order.status.value,
        )
        return order

    def get_by_id(self, order_id: str) -> Order | None:
        """Get an order by ID, or None if it does not exist."""
        try:
            item = self.db.get_item(self.ORDERS_TABLE, {"order_id": order_id})
        except STORE_ERRORS as e:
            raise OrderError(f"Failed to read order: {e}", details={"order_id": order_id}) from e
        return self._item_to_order(item) if item else None

    def get_by_user_id(self, user_id: str) -> list[Order]:
        """Get all orders of a user, newest first."""
        try:
            items = self.db.query_by_gsi(
                self.ORDERS_TABLE,
                self.USER_INDEX,
                "user_id",
                user_id,
            )
        except STORE_ERRORS as e:
            raise OrderError(f"Failed to list orders: {e}", details={"user_id": user_id}) from e
        orders = [self._item_to_order(item) for item in items]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    def get_by_session_id(self, session_id: str) -> Order | None:
        """Get the order created for a checkout session, if any."""
        try:
            claim = self._session_claim(session_id)
        except STORE_ERRORS as e:
            raise OrderError(
                f"Failed to read session claim: {e}", details={"session_id": session_id}
            ) from e
        if not claim:
            return None
        return self.get_by_id(claim["order_id"])

    def _require(self, order_id: str) -> Order:
        order = self.get_by_id(order_id)
        if order is None:
            raise NotFoundError("Order not found", details={"order_id": order_id})
        return order

    def _apply_update(
        self,
        order: Order,
        new_status: OrderStatus,
        extra_values: dict[str, Any],
    ) -> Order:
        if not is_transition_allowed(order.status, new_status):
            raise OrderError(
                f"Cannot change order status from {order.status.value} to {new_status.value}",
                code=ErrorCode.INVALID_STATUS_TRANSITION,
                status_code=409,
                details={
                    "order_id": order.id,
                    "current_status": order.status.value,
                    "requested_status": new_status.value,
                },
            )

        now = dt.datetime.now(dt.UTC).isoformat()
        set_parts = ["#status = :status", "updated_at = :now"]
        values: dict[str, Any] = {
            ":status": new_status.value,
            ":now": now,
            ":current": order.status.value,
        }
        for name, value in extra_values.items():
            set_parts.append(f"{name} = :{name}")
            values[f":{name}"] = value

        try:
            attrs = self.db.update_item(
                self.ORDERS_TABLE,
                {"order_id": order.id},
                "SET " + ", ".join(set_parts),
                values,
                {"#status": "status"},  # status is reserved word
                condition_expression="#status = :current",
            )
        except STORE_ERRORS as e:
            raise OrderError(f"Failed to update order: {e}", details={"order_id": order.id}) from e

        if attrs is None:
            raise OrderError(
                "Order status changed concurrently",
                code=ErrorCode.INVALID_STATUS_TRANSITION,
                status_code=409,
                details={"order_id": order.id, "expected_status": order.status.value},
            )

        log_payment_operation(
            logger,
            "update_order_status",
            order_id=order.id,
            status=new_status.value,
        )
        return self._item_to_order(attrs)

    def update_status(self, order_id: str, status: OrderStatus) -> Order:
        """Move an order to a new status.

        Raises:
            NotFoundError: If the order does not exist.
            OrderError: INVALID_STATUS_TRANSITION for a disallowed change.
        """
        return self._apply_update(self._require(order_id), status, {})

    def update_tracking_info(
        self,
        order_id: str,
        tracking_number: str,
        estimated_delivery_date: dt.datetime | None = None,
    ) -> Order:
        """Mark an order shipped with its tracking number."""
        extra: dict[str, Any] = {
            "tracking_number": tracking_number,
            "shipped_at": dt.datetime.now(dt.UTC).isoformat(),
        }
        if estimated_delivery_date:
            extra["estimated_delivery_date"] = estimated_delivery_date.isoformat()
        return self._apply_update(self._require(order_id), OrderStatus.SHIPPED, extra)

    # Conversion

    def _order_to_item(self, order: Order) -> dict[str, Any]:
        """Convert Order model to DynamoDB item."""
        item: dict[str, Any] = {
            "order_id": order.id,
            "user_id": order.user_id,
            "user_email": order.user_email,
            "items": [item.model_dump() for item in order.items],
            "total_amount": order.total_amount,
            "currency": order.currency,
            "status": order.status.value,
            "payment_method": order.payment_method.value,
            "stripe_session_id": order.stripe_session_id,
            "payment_intent_id": order.payment_intent_id,
            "tracking_number": order.tracking_number,
            "shipped_at": order.shipped_at.isoformat() if order.shipped_at else None,
            "estimated_delivery_date": (
                order.estimated_delivery_date.isoformat()
                if order.estimated_delivery_date
                else None
            ),
            "metadata": order.metadata,
            "created_at": order.created_at.isoformat(),
            "updated_at": order.updated_at.isoformat(),
        }
        return strip_none(item)

    def _item_to_order(self, item: dict[str, Any]) -> Order:
        """Convert DynamoDB item to Order model."""
        return Order(
            id=item["order_id"],
            user_id=item["user_id"],
            user_email=item.get("user_email", ""),
            items=[
                PaymentItem(
                    id=entry["id"],
                    name=entry["name"],
                    price=Decimal(str(entry["price"])),
                    quantity=int(entry["quantity"]),
                    description=entry.get("description"),
                    image_url=entry.get("image_url"),
                )
                for entry in item.get("items", [])
            ],
            total_amount=Decimal(str(item["total_amount"])),
            currency=item.get("currency", "eur"),
            status=OrderStatus(item["status"]),
            payment_method=PaymentMethod(item.get("payment_method", PaymentMethod.STRIPE.value)),
            stripe_session_id=item["stripe_session_id"],
            payment_intent_id=item.get("payment_intent_id"),
            tracking_number=item.get("tracking_number"),
            shipped_at=(
                dt.datetime.fromisoformat(item["shipped_at"]) if item.get("shipped_at") else None
            ),
            estimated_delivery_date=(
                dt.datetime.fromisoformat(item["estimated_delivery_date"])
                if item.get("estimated_delivery_date")
                else None
            ),
            metadata=dict(item.get("metadata", {})),
            created_at=dt.datetime.fromisoformat(item["created_at"]),
            updated_at=dt.datetime.fromisoformat(item["updated_at"]),
        )
