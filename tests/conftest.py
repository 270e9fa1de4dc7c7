"""Shared fixtures: moto-backed tables, catalog and cart rows, Stripe doubles."""

import os
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Generator
from unittest.mock import MagicMock

import boto3
import pytest
from moto import mock_aws

REGION = "eu-west-1"

# Must be in place before storefront modules read their configuration
for _name, _value in {
    "AWS_DEFAULT_REGION": REGION,
    "DYNAMODB_TABLE_PREFIX": "test-storefront",
    "ENVIRONMENT": "dev",
}.items():
    os.environ.setdefault(_name, _value)

if "AWS_PROFILE" not in os.environ and "AWS_ACCESS_KEY_ID" not in os.environ:
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")

TABLE_PREFIX = os.environ["DYNAMODB_TABLE_PREFIX"]


def _table_spec(
    name: str, key: str, index_key: str | None = None, index_type: str = "S"
) -> dict[str, Any]:
    """On-demand table keyed by ``key``, with an optional ``<index_key>-index`` GSI."""
    spec: dict[str, Any] = {
        "TableName": f"{TABLE_PREFIX}-{name}",
        "KeySchema": [{"AttributeName": key, "KeyType": "HASH"}],
        "AttributeDefinitions": [{"AttributeName": key, "AttributeType": "S"}],
        "BillingMode": "PAY_PER_REQUEST",
    }
    if index_key:
        spec["AttributeDefinitions"].append({"AttributeName": index_key, "AttributeType": index_type})
        spec["GlobalSecondaryIndexes"] = [
            {
                "IndexName": f"{index_key}-index",
                "KeySchema": [{"AttributeName": index_key, "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            }
        ]
    return spec


TABLE_SPECS = [
    _table_spec("orders", "order_id", "user_id"),
    _table_spec("order-sessions", "stripe_session_id"),
    _table_spec("products", "product_id", "legacy_id", "N"),
    _table_spec("abandoned-carts", "cart_id", "user_id"),
    _table_spec("stripe-webhook-events", "event_id"),
]


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Drop cached services so each test builds its own inside mock_aws."""
    from storefront_api.dependencies import reset_services

    reset_services()
    yield
    reset_services()


@pytest.fixture
def aws_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_SECURITY_TOKEN", "AWS_SESSION_TOKEN"):
        monkeypatch.setenv(name, "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", REGION)


@pytest.fixture
def dynamodb_client(aws_credentials: None) -> Generator[Any, None, None]:
    with mock_aws():
        yield boto3.client("dynamodb", region_name=REGION)


@pytest.fixture
def create_tables(dynamodb_client: Any) -> None:
    for spec in TABLE_SPECS:
        dynamodb_client.create_table(**spec)


@pytest.fixture
def db(create_tables: None) -> Any:
    """DynamoDBService bound to the mocked tables."""
    from storefront.services.dynamodb import get_dynamodb_service

    return get_dynamodb_service()


@pytest.fixture
def dynamo_table(create_tables: None) -> Any:
    """Callable mapping a short table name to its boto3 Table."""
    resource = boto3.resource("dynamodb", region_name=REGION)
    return lambda name: resource.Table(f"{TABLE_PREFIX}-{name}")


@pytest.fixture
def seed_products(db: Any, dynamo_table: Any) -> dict[str, dict[str, Any]]:
    """Catalog products: p1 (stock 5), p2 (stock 1, legacy id 42)."""
    products = {
        "p1": {"product_id": "p1", "name": "Scope 4-16x44", "stock_quantity": 5},
        "p2": {"product_id": "p2", "name": "Bipod", "stock_quantity": 1, "legacy_id": 42},
    }
    for product in products.values():
        dynamo_table("products").put_item(Item=product)
    return products


@pytest.fixture
def seed_carts(db: Any, dynamo_table: Any) -> list[dict[str, Any]]:
    """Two abandoned carts for u1, one already recovered, plus one for u2."""
    now = datetime.now(timezone.utc).isoformat()
    carts = [
        {
            "cart_id": "cart-1",
            "user_id": "u1",
            "user_email": "buyer@example.com",
            "items": [{"id": "p1", "quantity": 1}],
            "total": Decimal("1200.00"),
            "created_at": now,
            "last_updated": now,
            "reminder_sent": True,
            "reminder_count": 1,
            "recovered": False,
        },
        {
            "cart_id": "cart-2",
            "user_id": "u1",
            "items": [],
            "total": Decimal("0"),
            "created_at": now,
            "last_updated": now,
            "recovered": True,
            "recovered_at": now,
        },
        {
            "cart_id": "cart-3",
            "user_id": "u2",
            "items": [],
            "total": Decimal("10.00"),
            "created_at": now,
            "last_updated": now,
            "recovered": False,
        },
    ]
    for cart in carts:
        dynamo_table("abandoned-carts").put_item(Item=cart)
    return carts


@pytest.fixture
def paid_metadata() -> dict[str, str]:
    """Session metadata for one p1 at 1200.00, as written at checkout."""
    from storefront.models import FulfillmentContext, PaymentItem

    context = FulfillmentContext(
        user_id="u1",
        user_email="buyer@example.com",
        items=[PaymentItem(id="p1", name="Scope 4-16x44", price=Decimal("1200.00"), quantity=1)],
        total_amount=Decimal("1200.00"),
        items_count=1,
    )
    return context.to_metadata()


@pytest.fixture
def checkout_completed_event(paid_metadata: dict[str, str]) -> dict[str, Any]:
    """A paid checkout.session.completed event carrying ``paid_metadata``."""
    return {
        "id": "evt_test_checkout_completed_123",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": "cs_test_session_abc",
                "payment_intent": "pi_test_intent_xyz",
                "amount_total": 120000,
                "currency": "eur",
                "status": "complete",
                "payment_status": "paid",
                "metadata": paid_metadata,
                "customer_email": "buyer@example.com",
            }
        },
        "created": 1704067200,
    }


@pytest.fixture
def mock_stripe_client() -> MagicMock:
    """StripeClient double whose sessions are open and unpaid."""
    client = MagicMock()
    session = MagicMock()
    session.id = "cs_test_session_abc"
    session.url = "https://checkout.stripe.com/c/pay/cs_test_session_abc"
    session.payment_status = "unpaid"
    session.status = "open"
    client.checkout.sessions.create.return_value = session
    client.checkout.sessions.retrieve.return_value = session
    return client


@pytest.fixture
def stripe_service(mock_stripe_client: MagicMock) -> Any:
    """StripeService around the mocked client."""
    from storefront.services.stripe_service import StripeService

    return StripeService(
        mock_stripe_client,
        webhook_secret="whsec_test_secret123",
        public_url="https://shop.example.com",
        currency="eur",
    )
