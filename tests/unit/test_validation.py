"""Unit tests for checkout request validation."""

from decimal import Decimal

import pytest

from storefront.models import ErrorCode, PaymentItem, PaymentSessionRequest, ValidationError
from storefront.services.validation import (
    validate_amount,
    validate_items,
    validate_payment_request,
)


def _item(**overrides) -> PaymentItem:
    data = {"id": "p1", "name": "Scope", "price": Decimal("10.00"), "quantity": 1}
    data.update(overrides)
    return PaymentItem(**data)


def _request(**overrides) -> PaymentSessionRequest:
    data = {
        "items": [_item()],
        "user_id": "u1",
        "user_email": "buyer@example.com",
        "success_url": "https://shop.example.com/success",
        "cancel_url": "https://shop.example.com/cart",
    }
    data.update(overrides)
    return PaymentSessionRequest(**data)


class TestValidateAmount:
    """Test amount bounds."""

    @pytest.mark.parametrize("amount", [Decimal("0.01"), 1, 999.99, Decimal("1000000")])
    def test_accepts_amounts_within_bounds(self, amount):
        assert validate_amount(amount) is True

    def test_rejects_below_minimum(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_amount(Decimal("0.001"))
        assert exc_info.value.details["reason"] == "BELOW_MINIMUM"

    def test_rejects_above_maximum(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_amount(Decimal("1000000.01"))
        assert exc_info.value.details["reason"] == "ABOVE_MAXIMUM"

    @pytest.mark.parametrize("amount", ["10", None, True, float("nan")])
    def test_rejects_non_numbers(self, amount):
        with pytest.raises(ValidationError) as exc_info:
            validate_amount(amount)
        assert exc_info.value.details["reason"] == "INVALID_TYPE"


class TestValidateItems:
    """Test cart item validation."""

    def test_empty_cart_has_its_own_code(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_items([])
        assert exc_info.value.code == ErrorCode.EMPTY_CART.value
        assert exc_info.value.status_code == 400

    def test_valid_items_pass(self):
        assert validate_items([_item(), _item(id="p2", quantity=1000)]) is True

    def test_reports_every_violation_at_once(self):
        items = [
            _item(id="", price=Decimal("0")),
            _item(name="  ", quantity=0),
            _item(quantity=1001),
        ]

        with pytest.raises(ValidationError) as exc_info:
            validate_items(items)

        field_errors = exc_info.value.details["field_errors"]
        assert set(field_errors) == {
            "items[0].id",
            "items[0].price",
            "items[1].name",
            "items[1].quantity",
            "items[2].quantity",
        }


class TestValidatePaymentRequest:
    """Test whole-request validation."""

    def test_valid_request_passes(self):
        assert validate_payment_request(_request()) is True

    def test_missing_request_is_rejected(self):
        with pytest.raises(ValidationError):
            validate_payment_request(None)

    @pytest.mark.parametrize("email", ["", "buyer", "buyer@example", "bu yer@example.com"])
    def test_rejects_bad_email(self, email):
        with pytest.raises(ValidationError) as exc_info:
            validate_payment_request(_request(user_email=email))
        assert "user_email" in exc_info.value.details["field_errors"]

    @pytest.mark.parametrize("url", ["", "/success", "ftp://shop.example.com", "https://"])
    def test_rejects_non_absolute_urls(self, url):
        with pytest.raises(ValidationError) as exc_info:
            validate_payment_request(_request(success_url=url, cancel_url=url))
        field_errors = exc_info.value.details["field_errors"]
        assert "success_url" in field_errors
        assert "cancel_url" in field_errors

    def test_aggregates_item_and_request_errors(self):
        request = _request(items=[_item(quantity=0)], user_id="", user_email="nope")

        with pytest.raises(ValidationError) as exc_info:
            validate_payment_request(request)

        field_errors = exc_info.value.details["field_errors"]
        assert {"items[0].quantity", "user_id", "user_email"} <= set(field_errors)

    def test_empty_cart_is_reported_as_field_error(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_payment_request(_request(items=[]))
        assert "items" in exc_info.value.details["field_errors"]
