"""Enumeration types for storefront fulfillment models."""

from enum import Enum


class PaymentStatus(str, Enum):
    """Payment status of a checkout session as seen by this system."""

    PAID = "PAID"
    PENDING = "PENDING"
    FAILED = "FAILED"


class OrderStatus(str, Enum):
    """Lifecycle status of an order."""

    PENDING = "PENDING"
    PAID = "PAID"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


class PaymentMethod(str, Enum):
    """Payment methods an order can be settled with."""

    STRIPE = "STRIPE"
    PAYPAL = "PAYPAL"
    BANK_TRANSFER = "BANK_TRANSFER"


class FulfillmentStage(str, Enum):
    """Stages reached by one fulfillment attempt.

    INVENTORY_ADJUSTED, CART_RECONCILED and NOTIFIED are advisory: they are
    recorded when the step succeeds but never gate progression.
    """

    RECEIVED = "RECEIVED"
    VALIDATED = "VALIDATED"
    ORDER_CREATED = "ORDER_CREATED"
    INVENTORY_ADJUSTED = "INVENTORY_ADJUSTED"
    CART_RECONCILED = "CART_RECONCILED"
    NOTIFIED = "NOTIFIED"
    DONE = "DONE"


class NotificationTemplate(str, Enum):
    """Message templates understood by notifiers."""

    ORDER_CONFIRMATION = "order_confirmation"
    OPERATOR_ALERT = "operator_alert"
