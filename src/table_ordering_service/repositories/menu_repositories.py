"""DynamoDB repositories for restaurants, tables and menu items.

Each table is keyed by ``id``; tables and menu items carry a
``restaurant_id-index`` GSI for restaurant-scoped listing. The tables table
also holds one label row per table, keyed by restaurant and lower-cased label
and without a ``restaurant_id``, so it stays out of the GSI and out of reads.
"""

import logging
from typing import Any

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table as DynamoTable

from table_ordering_service.models.errors import ConflictError, InternalError
from table_ordering_service.models.menu_models import MenuItem, Restaurant, Table
from table_ordering_service.repositories.transactions import (
    is_condition_failure,
    serialize_attributes,
)

logger = logging.getLogger(__name__)

RESTAURANT_INDEX = "restaurant_id-index"


def table_label_key(restaurant_id: str, label: str) -> str:
    """Key of the row reserving a table label within a restaurant."""
    return f"label#{restaurant_id}#{label.strip().lower()}"


class _KeyedRepository:
    """Shared get/list plumbing for ``id``-keyed tables."""

    def __init__(self, dynamodb_resource: DynamoDBServiceResource, table_name: str) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            table_name: Name of the DynamoDB table
        """
        self.dynamodb = dynamodb_resource
        self.table_name = table_name
        self.table: DynamoTable = dynamodb_resource.Table(table_name)

    def _get(self, key: str, operation: str) -> dict[str, Any] | None:
        try:
            response = self.table.get_item(Key={"id": key})
        except ClientError as e:
            logger.error(f"Failed to {operation}: {e}")
            raise InternalError(f"Failed to {operation}") from e
        return response.get("Item")

    def _list_for_restaurant(self, restaurant_id: str, operation: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        kwargs: dict[str, Any] = {
            "IndexName": RESTAURANT_INDEX,
            "KeyConditionExpression": Key("restaurant_id").eq(restaurant_id),
        }
        try:
            while True:
                response = self.table.query(**kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    return items
                kwargs["ExclusiveStartKey"] = last_key
        except ClientError as e:
            logger.error(f"Failed to {operation}: {e}")
            raise InternalError(f"Failed to {operation}") from e

    def _put(self, item: dict[str, Any], operation: str, **kwargs: Any) -> None:
        try:
            self.table.put_item(Item=item, **kwargs)
        except ClientError as e:
            logger.error(f"Failed to {operation}: {e}")
            raise InternalError(f"Failed to {operation}") from e


class RestaurantRepository(_KeyedRepository):
    """Repository for restaurant records."""

    def get_restaurant(self, restaurant_id: str) -> Restaurant | None:
        item = self._get(restaurant_id, "get restaurant")
        return Restaurant.from_dynamodb_item(item) if item else None

    def update_restaurant(self, restaurant_id: str, **fields: Any) -> Restaurant | None:
        """Set fields of an existing restaurant without rewriting the rest.

        Args:
            restaurant_id: Restaurant identifier
            **fields: Attribute names and their new values

        Returns:
            The updated Restaurant, or None if it does not exist
        """
        try:
            response = self.table.update_item(
                Key={"id": restaurant_id},
                UpdateExpression="SET " + ", ".join(f"#{name} = :{name}" for name in fields),
                ConditionExpression="attribute_exists(id)",
                ExpressionAttributeNames={f"#{name}": name for name in fields},
                ExpressionAttributeValues={f":{name}": value for name, value in fields.items()},
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if is_condition_failure(e):
                return None
            logger.error(f"Failed to update restaurant {restaurant_id}: {e}")
            raise InternalError("Failed to update restaurant") from e

        return Restaurant.from_dynamodb_item(response["Attributes"])


class MenuItemRepository(_KeyedRepository):
    """Repository for menu item CRUD operations."""

    def get_menu_item(self, menu_item_id: str) -> MenuItem | None:
        """Retrieve a menu item by id.

        Args:
            menu_item_id: Menu item identifier

        Returns:
            MenuItem if found, None otherwise
        """
        item = self._get(menu_item_id, "get menu item")
        return MenuItem.from_dynamodb_item(item) if item else None

    def list_menu_items(self, restaurant_id: str) -> list[MenuItem]:
        """List every menu item of a restaurant, available or not.

        Args:
            restaurant_id: Restaurant identifier

        Returns:
            list: Menu items sorted by category then name
        """
        items = [
            MenuItem.from_dynamodb_item(item)
            for item in self._list_for_restaurant(restaurant_id, "list menu items")
        ]
        items.sort(key=lambda m: (m.category.lower(), m.name.lower()))
        return items

    def save_menu_item(self, menu_item: MenuItem) -> None:
        self._put(menu_item.to_dynamodb_item(), "save menu item")


class TableRepository(_KeyedRepository):
    """Repository for dining tables."""

    def get_table(self, table_id: str) -> Table | None:
        item = self._get(table_id, "get table")
        # Label rows share the table but are not tables
        if not item or "restaurant_id" not in item:
            return None
        return Table.from_dynamodb_item(item)

    def list_tables(self, restaurant_id: str) -> list[Table]:
        """List a restaurant's tables ordered by label.

        Args:
            restaurant_id: Restaurant identifier

        Returns:
            list: Tables (empty list if none found)
        """
        tables = [
            Table.from_dynamodb_item(item)
            for item in self._list_for_restaurant(restaurant_id, "list tables")
        ]
        tables.sort(key=lambda t: t.label)
        return tables

    def create_table(self, table: Table) -> None:
        """Create a table and reserve its label in one transaction.

        Args:
            table: Table to create

        Raises:
            ConflictError: If the label is taken in the restaurant or the id exists
        """
        transact_items: list[dict[str, Any]] = [
            {
                "Put": {
                    "TableName": self.table_name,
                    "Item": serialize_attributes(table.to_dynamodb_item()),
                    "ConditionExpression": "attribute_not_exists(id)",
                }
            },
            {
                "Put": {
                    "TableName": self.table_name,
                    "Item": serialize_attributes(
                        {"id": table_label_key(table.restaurant_id, table.label), "table_id": table.id}
                    ),
                    "ConditionExpression": "attribute_not_exists(id)",
                }
            },
        ]

        try:
            self.dynamodb.meta.client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            if is_condition_failure(e):
                raise ConflictError(f"Table {table.label} already exists") from e
            logger.error(f"Failed to create table: {e}")
            raise InternalError("Failed to create table") from e
