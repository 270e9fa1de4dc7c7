"""Abandoned cart model and reconciliation summary."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


class AbandonedCart(BaseModel):
    """Cart snapshot persisted by abandonment detection.

    The fulfillment pipeline only marks these recovered and deletes them.
    """

    id: str
    user_id: str
    user_email: str | None = None
    items: list[dict[str, Any]] = Field(default_factory=list)
    total: Decimal = Decimal("0")
    created_at: datetime
    last_updated: datetime
    reminder_sent: bool = False
    reminder_count: int = 0
    recovered: bool = False
    recovered_at: datetime | None = None


class CartReconciliationSummary(BaseModel):
    """Outcome of reconciling one user's abandoned carts."""

    user_id: str
    marked_recovered: int = 0
    deleted: int = 0
    errors: list[str] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.errors
