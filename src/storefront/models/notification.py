"""Notification result models."""

from pydantic import BaseModel


class NotificationResult(BaseModel):
    """Outcome of a single notifier send."""

    success: bool
    message_id: str | None = None
    error: str | None = None
    channel: str | None = None
    deferred: bool = False


class NotificationOutcome(BaseModel):
    """What the fulfillment pipeline managed to send for an order."""

    confirmation: NotificationResult | None = None
    operator_alert: NotificationResult | None = None
    skipped_reason: str | None = None
