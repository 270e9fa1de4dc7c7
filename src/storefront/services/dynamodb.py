"""Thin DynamoDB wrapper shared by the order, catalog and cart stores.

Table names are logical (``orders``, ``products``...) and resolved against
a prefix, ``DYNAMODB_TABLE_PREFIX`` or ``storefront-{environment}``.
Conditional writes report a failed condition through their return value;
every other ``ClientError`` propagates to the calling store.
"""

import os
from typing import Any, Iterator

import boto3
from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from .aws_config import get_client_config

CONDITION_FAILED = "ConditionalCheckFailedException"
TRANSACTION_CANCELED = "TransactionCanceledException"

_instance: "DynamoDBService | None" = None


def get_dynamodb_service(environment: str | None = None) -> "DynamoDBService":
    """Return the process-wide DynamoDBService, creating it on first use.

    Args:
        environment: Environment name, honoured only by the first call.
    """
    global _instance
    if _instance is None:
        _instance = DynamoDBService(environment)
    return _instance


def reset_dynamodb_service() -> None:
    """Forget the shared instance so the next call builds a fresh one.

    Tests call this so each moto context gets its own boto3 resource.
    """
    global _instance
    _instance = None


def _condition_failed(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == CONDITION_FAILED


def _with_optional(kwargs: dict[str, Any], **optional: Any) -> dict[str, Any]:
    kwargs.update({name: value for name, value in optional.items() if value})
    return kwargs


class DynamoDBService:
    """Prefixed access to the storefront tables."""

    def __init__(self, environment: str | None = None) -> None:
        self.environment = environment or os.getenv("ENVIRONMENT", "dev")
        self.name_prefix = os.getenv("DYNAMODB_TABLE_PREFIX") or f"storefront-{self.environment}"
        self._resource = boto3.resource("dynamodb", config=get_client_config())
        self._client = boto3.client("dynamodb", config=get_client_config())
        self._serializer = TypeSerializer()

    def table(self, name: str) -> Any:
        """boto3 Table for a logical table name."""
        return self._resource.Table(f"{self.name_prefix}-{name}")

    def get_item(
        self,
        table: str,
        key: dict[str, Any],
        consistent_read: bool = False,
    ) -> dict[str, Any] | None:
        """Fetch one item, or None when the key is absent."""
        response = self.table(table).get_item(Key=key, ConsistentRead=consistent_read)
        return response.get("Item")

    def put_item(
        self,
        table: str,
        item: dict[str, Any],
        condition_expression: str | None = None,
    ) -> bool:
        """Write an item.

        Returns:
            False when ``condition_expression`` did not hold, True otherwise.
        """
        request = _with_optional({"Item": item}, ConditionExpression=condition_expression)
        try:
            self.table(table).put_item(**request)
        except ClientError as e:
            if _condition_failed(e):
                return False
            raise
        return True

    def update_item(
        self,
        table: str,
        key: dict[str, Any],
        update_expression: str,
        expression_attribute_values: dict[str, Any],
        expression_attribute_names: dict[str, str] | None = None,
        condition_expression: str | None = None,
    ) -> dict[str, Any] | None:
        """Apply an update expression.

        Returns:
            The item as stored after the update, or None when the
            condition did not hold.
        """
        request = _with_optional(
            {
                "Key": key,
                "UpdateExpression": update_expression,
                "ExpressionAttributeValues": expression_attribute_values,
                "ReturnValues": "ALL_NEW",
            },
            ExpressionAttributeNames=expression_attribute_names,
            ConditionExpression=condition_expression,
        )
        try:
            response = self.table(table).update_item(**request)
        except ClientError as e:
            if _condition_failed(e):
                return None
            raise
        return response.get("Attributes")

    def delete_item(
        self,
        table: str,
        key: dict[str, Any],
        condition_expression: str | None = None,
        expression_attribute_values: dict[str, Any] | None = None,
    ) -> bool:
        """Delete an item. Deleting a missing key counts as success.

        Returns:
            False when the condition did not hold.
        """
        request = _with_optional(
            {"Key": key},
            ConditionExpression=condition_expression,
            ExpressionAttributeValues=expression_attribute_values,
        )
        try:
            self.table(table).delete_item(**request)
        except ClientError as e:
            if _condition_failed(e):
                return False
            raise
        return True

    def put_request(
        self,
        table: str,
        item: dict[str, Any],
        condition_expression: str | None = None,
    ) -> dict[str, Any]:
        """A ``Put`` entry for ``transact_write``, in the low-level wire format."""
        put = _with_optional(
            {
                "TableName": f"{self.name_prefix}-{table}",
                "Item": {name: self._serializer.serialize(value) for name, value in item.items()},
            },
            ConditionExpression=condition_expression,
        )
        return {"Put": put}

    def transact_write(self, items: list[dict[str, Any]]) -> bool:
        """Apply all entries atomically.

        Returns:
            False when DynamoDB cancelled the transaction (a condition did
            not hold or a conflicting write was in flight), True otherwise.
        """
        try:
            self._client.transact_write_items(TransactItems=items)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == TRANSACTION_CANCELED:
                return False
            raise
        return True

    def _pages(self, table: str, request: dict[str, Any]) -> Iterator[list[dict[str, Any]]]:
        resource = self.table(table)
        while True:
            response = resource.query(**request)
            yield response.get("Items", [])
            start_key = response.get("LastEvaluatedKey")
            if not start_key:
                return
            request = {**request, "ExclusiveStartKey": start_key}

    def query(
        self,
        table: str,
        key_condition: Any,
        index_name: str | None = None,
        filter_expression: Any | None = None,
        limit: int | None = None,
        scan_index_forward: bool = True,
    ) -> list[dict[str, Any]]:
        """Run a query across all result pages.

        ``limit`` caps the number of items returned, not the page size.
        """
        request = _with_optional(
            {"KeyConditionExpression": key_condition, "ScanIndexForward": scan_index_forward},
            IndexName=index_name,
            FilterExpression=filter_expression,
        )
        items: list[dict[str, Any]] = []
        for page in self._pages(table, request):
            items.extend(page)
            if limit and len(items) >= limit:
                return items[:limit]
        return items

    def query_by_gsi(
        self,
        table: str,
        index_name: str,
        partition_key_name: str,
        partition_key_value: Any,
        filter_expression: Any | None = None,
    ) -> list[dict[str, Any]]:
        """All items of a GSI partition, optionally filtered."""
        return self.query(
            table,
            Key(partition_key_name).eq(partition_key_value),
            index_name=index_name,
            filter_expression=filter_expression,
        )
