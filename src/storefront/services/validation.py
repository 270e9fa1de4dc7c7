"""Validation of payment requests before any I/O.

All checks collect every violation and raise a single ``ValidationError``
whose ``details["field_errors"]`` maps field paths to messages, so a client
can fix a whole form in one round trip.
"""

import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any
from urllib.parse import urlparse

from storefront.models.errors import ErrorCode, ValidationError
from storefront.models.payment import PaymentItem, PaymentSessionRequest

MIN_AMOUNT = Decimal("0.01")
MAX_AMOUNT = Decimal("1000000")
MIN_QUANTITY = 1
MAX_QUANTITY = 1000

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def validate_amount(amount: Any) -> bool:
    """Check an amount is a number within [MIN_AMOUNT, MAX_AMOUNT].

    Raises:
        ValidationError: With ``reason`` INVALID_TYPE, BELOW_MINIMUM or ABOVE_MAXIMUM.
    """
    if isinstance(amount, bool) or not isinstance(amount, (int, float, Decimal)):
        raise ValidationError(
            "Amount must be a valid number",
            details={"field": "amount", "value": str(amount), "reason": "INVALID_TYPE"},
        )

    try:
        value = Decimal(str(amount))
    except InvalidOperation:
        value = None
    if value is None or value.is_nan() or (isinstance(amount, float) and math.isinf(amount)):
        raise ValidationError(
            "Amount must be a valid number",
            details={"field": "amount", "value": str(amount), "reason": "INVALID_TYPE"},
        )

    if value < MIN_AMOUNT:
        raise ValidationError(
            f"Minimum amount is {MIN_AMOUNT}",
            details={
                "field": "amount",
                "value": str(amount),
                "min": str(MIN_AMOUNT),
                "reason": "BELOW_MINIMUM",
            },
        )

    if value > MAX_AMOUNT:
        raise ValidationError(
            f"Maximum amount is {MAX_AMOUNT}",
            details={
                "field": "amount",
                "value": str(amount),
                "max": str(MAX_AMOUNT),
                "reason": "ABOVE_MAXIMUM",
            },
        )

    return True


def _item_errors(index: int, item: PaymentItem) -> dict[str, str]:
    errors: dict[str, str] = {}
    prefix = f"items[{index}]"

    if not isinstance(item.id, str) or not item.id.strip():
        errors[f"{prefix}.id"] = "Item ID is required and must be a string"

    if not isinstance(item.name, str) or not item.name.strip():
        errors[f"{prefix}.name"] = "Item name is required"

    try:
        validate_amount(item.price)
    except ValidationError as e:
        errors[f"{prefix}.price"] = e.message

    if (
        isinstance(item.quantity, bool)
        or not isinstance(item.quantity, int)
        or not MIN_QUANTITY <= item.quantity <= MAX_QUANTITY
    ):
        errors[f"{prefix}.quantity"] = (
            f"Quantity must be an integer between {MIN_QUANTITY} and {MAX_QUANTITY}"
        )

    return errors


def validate_items(items: list[PaymentItem] | None) -> bool:
    """Validate cart items.

    Raises:
        ValidationError: EMPTY_CART for an empty list, otherwise
            VALIDATION_ERROR with every per-item violation.
    """
    if not items:
        raise ValidationError(
            "The cart cannot be empty",
            code=ErrorCode.EMPTY_CART,
            details={
                "field": "items",
                "reason": "EMPTY_CART",
                "field_errors": {"items": "The cart cannot be empty"},
            },
        )

    field_errors: dict[str, str] = {}
    for index, item in enumerate(items):
        field_errors.update(_item_errors(index, item))

    if field_errors:
        raise ValidationError(
            "Validation errors in cart items",
            details={"field_errors": field_errors},
        )

    return True


def _is_absolute_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme in ("http", "https") and parsed.netloc)


def validate_payment_request(request: PaymentSessionRequest | None) -> bool:
    """Validate a checkout request: items, user, email and redirect URLs.

    Raises:
        ValidationError: With all field errors aggregated.
    """
    if request is None:
        raise ValidationError(
            "The payment request is required",
            details={"field": "request", "reason": "MISSING_REQUEST"},
        )

    field_errors: dict[str, str] = {}

    try:
        validate_items(request.items)
    except ValidationError as e:
        field_errors.update((e.details or {}).get("field_errors", {}))

    if not request.user_id or not request.user_id.strip():
        field_errors["user_id"] = "User ID is required"

    if not request.user_email:
        field_errors["user_email"] = "User email is required"
    elif not EMAIL_PATTERN.match(request.user_email):
        field_errors["user_email"] = "User email is not valid"

    for field, label in (("success_url", "Success URL"), ("cancel_url", "Cancel URL")):
        value = getattr(request, field)
        if not value:
            field_errors[field] = f"{label} is required"
        elif not _is_absolute_url(value):
            field_errors[field] = f"{label} is not valid"

    if field_errors:
        raise ValidationError(
            "Validation errors in payment request",
            details={"field_errors": field_errors},
        )

    return True
