"""DynamoDB repository for orders and their items.

Orders are keyed by ``id`` with a ``restaurant_id``/``created_at`` GSI for
restaurant-scoped range reads and a sparse ``open_restaurant_id``/``created_at``
GSI holding only orders that are neither DELIVERED nor CANCELLED. Items are
keyed by (``order_id``, ``id``) so an order's items can be read with a
consistent query, with an eventually consistent ``id`` GSI for lookups by item
id alone.

Every compound write goes through ``TransactWriteItems`` so that either all
of it is applied or none of it is. Store failures are logged and raised as
InternalError; a lost conditional write on the order version is raised as
VersionConflict.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from boto3.dynamodb.conditions import Attr, ConditionBase, Key
from botocore.exceptions import ClientError
from mypy_boto3_dynamodb.service_resource import DynamoDBServiceResource, Table

from table_ordering_service.models.errors import InternalError, VersionConflict
from table_ordering_service.models.order_models import (
    Order,
    OrderItem,
    OrderStatus,
    format_timestamp,
)
from table_ordering_service.repositories.transactions import (
    is_condition_failure,
    serialize_attributes,
)

logger = logging.getLogger(__name__)

ORDERS_BY_RESTAURANT_INDEX = "restaurant_id-created_at-index"
ITEMS_BY_ID_INDEX = "id-index"
OPEN_ORDERS_INDEX = "open_restaurant_id-created_at-index"


@dataclass
class OrderChangeSet:
    """Writes to apply to one order as a single transaction.

    Attributes:
        order: The order as it should look after the write (version not yet bumped)
        expected_version: Version the order must still have for the write to apply
        new_items: Items to create
        updated_items: Existing items whose status/notes changed
    """

    order: Order
    expected_version: int
    new_items: list[OrderItem] = field(default_factory=list)
    updated_items: list[OrderItem] = field(default_factory=list)


class OrderRepository:
    """Repository for order and order item reads and transactional writes."""

    def __init__(
        self,
        dynamodb_resource: DynamoDBServiceResource,
        orders_table_name: str,
        items_table_name: str,
    ) -> None:
        """Initialize repository.

        Args:
            dynamodb_resource: Boto3 DynamoDB resource
            orders_table_name: Name of the orders table
            items_table_name: Name of the order items table
        """
        self.dynamodb = dynamodb_resource
        self.orders_table_name = orders_table_name
        self.items_table_name = items_table_name
        self.orders_table: Table = dynamodb_resource.Table(orders_table_name)
        self.items_table: Table = dynamodb_resource.Table(items_table_name)
        self.client = dynamodb_resource.meta.client

    def get_order(self, order_id: str) -> Order | None:
        """Retrieve an order by id with a strongly consistent read.

        Args:
            order_id: Order identifier

        Returns:
            Order if found, None otherwise
        """
        try:
            response = self.orders_table.get_item(Key={"id": order_id}, ConsistentRead=True)
        except ClientError as e:
            logger.error(f"Failed to get order {order_id}: {e}")
            raise InternalError("Failed to read order") from e

        if "Item" not in response:
            return None

        return Order.from_dynamodb_item(response["Item"])

    def list_orders(
        self,
        restaurant_id: str,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        end_inclusive: bool = True,
        statuses: Iterable[OrderStatus] | None = None,
        table_id: str | None = None,
        newest_first: bool = True,
    ) -> list[Order]:
        """List a restaurant's orders, optionally within a creation window.

        Args:
            restaurant_id: Restaurant identifier
            created_from: Inclusive lower bound on created_at
            created_to: Upper bound on created_at
            end_inclusive: Whether created_to itself is part of the window
            statuses: Only return orders in these statuses
            table_id: Only return orders placed from this table
            newest_first: Sort by created_at descending instead of ascending

        Returns:
            list: Matching orders (empty list if none found)
        """
        key_condition: ConditionBase = Key("restaurant_id").eq(restaurant_id)
        if created_from is not None and created_to is not None:
            key_condition = key_condition & Key("created_at").between(
                format_timestamp(created_from), format_timestamp(created_to)
            )
        elif created_from is not None:
            key_condition = key_condition & Key("created_at").gte(format_timestamp(created_from))
        elif created_to is not None:
            key_condition = key_condition & Key("created_at").lte(format_timestamp(created_to))

        filters: list[ConditionBase] = []
        if statuses:
            filters.append(Attr("status").is_in([s.value for s in statuses]))
        if table_id:
            filters.append(Attr("table_id").eq(table_id))

        query_kwargs: dict[str, Any] = {
            "IndexName": ORDERS_BY_RESTAURANT_INDEX,
            "KeyConditionExpression": key_condition,
            "ScanIndexForward": not newest_first,
        }
        if filters:
            filter_expression = filters[0]
            for extra in filters[1:]:
                filter_expression = filter_expression & extra
            query_kwargs["FilterExpression"] = filter_expression

        raw_items = self._query_all(self.orders_table, query_kwargs, "list orders")
        orders = [Order.from_dynamodb_item(item) for item in raw_items]

        if created_to is not None and not end_inclusive:
            cutoff = format_timestamp(created_to)
            orders = [o for o in orders if format_timestamp(o.created_at) < cutoff]

        return orders

    def list_open_orders(
        self,
        restaurant_id: str,
        statuses: Iterable[OrderStatus] | None = None,
    ) -> list[Order]:
        """List a restaurant's open orders, oldest first.

        Reads the sparse open-orders index, so the cost follows the number of
        orders in progress rather than the restaurant's whole history.

        Args:
            restaurant_id: Restaurant identifier
            statuses: Only return orders in these statuses

        Returns:
            list: Orders that are neither DELIVERED nor CANCELLED
        """
        query_kwargs: dict[str, Any] = {
            "IndexName": OPEN_ORDERS_INDEX,
            "KeyConditionExpression": Key("open_restaurant_id").eq(restaurant_id),
            "ScanIndexForward": True,
        }
        if statuses:
            query_kwargs["FilterExpression"] = Attr("status").is_in([s.value for s in statuses])

        raw_items = self._query_all(self.orders_table, query_kwargs, "list open orders")
        # Index projections lag the base table; drop anything closed since
        return [order for order in map(Order.from_dynamodb_item, raw_items) if order.is_open]

    def get_items(self, order_id: str) -> list[OrderItem]:
        """List an order's items, ordered by batch then creation time.

        Args:
            order_id: Order identifier

        Returns:
            list: The order's items (empty list if none found)
        """
        raw_items = self._query_all(
            self.items_table,
            {
                "KeyConditionExpression": Key("order_id").eq(order_id),
                "ConsistentRead": True,
            },
            "list order items",
        )
        items = [OrderItem.from_dynamodb_item(item) for item in raw_items]
        items.sort(key=lambda i: (i.added_in_batch, i.created_at))
        return items

    def get_items_for_orders(self, order_ids: Iterable[str]) -> dict[str, list[OrderItem]]:
        """List items for several orders.

        Args:
            order_ids: Order identifiers

        Returns:
            dict: Mapping of order id to its items
        """
        return {order_id: self.get_items(order_id) for order_id in order_ids}

    def get_item(self, item_id: str, order_id: str | None = None) -> OrderItem | None:
        """Retrieve an order item by its id.

        With ``order_id`` the item is read from the base table with a strongly
        consistent read. Without it the lookup goes through the ``id`` GSI,
        which is eventually consistent: an item written moments ago may not
        be found yet.

        Args:
            item_id: Order item identifier
            order_id: Order the item belongs to, if known

        Returns:
            OrderItem if found, None otherwise
        """
        try:
            if order_id is not None:
                response = self.items_table.get_item(
                    Key={"order_id": order_id, "id": item_id}, ConsistentRead=True
                )
                items = [response["Item"]] if "Item" in response else []
            else:
                response = self.items_table.query(
                    IndexName=ITEMS_BY_ID_INDEX,
                    KeyConditionExpression=Key("id").eq(item_id),
                    Limit=1,
                )
                items = response.get("Items", [])
        except ClientError as e:
            logger.error(f"Failed to get order item {item_id}: {e}")
            raise InternalError("Failed to read order item") from e

        if not items:
            return None

        return OrderItem.from_dynamodb_item(items[0])

    def create_order(self, order: Order, items: list[OrderItem]) -> None:
        """Create an order and its first batch of items atomically.

        Args:
            order: Order to create
            items: Items belonging to the order
        """
        transact_items: list[dict[str, Any]] = [
            {
                "Put": {
                    "TableName": self.orders_table_name,
                    "Item": serialize_attributes(order.to_dynamodb_item()),
                    "ConditionExpression": "attribute_not_exists(id)",
                }
            }
        ]
        transact_items.extend(self._put_item_request(item) for item in items)

        try:
            self.client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            logger.error(f"Failed to create order {order.id}: {e}")
            raise InternalError("Failed to create order") from e

    def commit_changes(self, changes: OrderChangeSet) -> Order:
        """Apply an OrderChangeSet if the order is still at the expected version.

        Args:
            changes: Order update, item creations and item updates to apply

        Returns:
            Order: The written order with its new version

        Raises:
            VersionConflict: If another writer changed the order first
            InternalError: On any other store failure
        """
        next_version = changes.expected_version + 1
        committed = changes.order.model_copy(update={"version": next_version})

        values: dict[str, Any] = {
            ":status": committed.status.value,
            ":total_amount": committed.total_amount,
            ":updated_at": format_timestamp(committed.updated_at),
            ":next_version": next_version,
            ":expected_version": changes.expected_version,
        }
        expression = (
            "SET #status = :status, total_amount = :total_amount, "
            "updated_at = :updated_at, #version = :next_version"
        )
        # Keep the order in the open-orders index only while it is open
        if committed.is_open:
            expression += ", open_restaurant_id = :restaurant_id"
            values[":restaurant_id"] = committed.restaurant_id
        else:
            expression += " REMOVE open_restaurant_id"

        transact_items: list[dict[str, Any]] = [
            {
                "Update": {
                    "TableName": self.orders_table_name,
                    "Key": serialize_attributes({"id": committed.id}),
                    "UpdateExpression": expression,
                    "ConditionExpression": "#version = :expected_version",
                    "ExpressionAttributeNames": {"#status": "status", "#version": "version"},
                    "ExpressionAttributeValues": serialize_attributes(values),
                }
            }
        ]
        transact_items.extend(self._put_item_request(item) for item in changes.new_items)
        transact_items.extend(self._update_item_request(item) for item in changes.updated_items)

        try:
            self.client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            if is_condition_failure(e):
                raise VersionConflict(committed.id, changes.expected_version) from e
            logger.error(f"Failed to write order {committed.id}: {e}")
            raise InternalError("Failed to update order") from e

        return committed

    def _put_item_request(self, item: OrderItem) -> dict[str, Any]:
        return {
            "Put": {
                "TableName": self.items_table_name,
                "Item": serialize_attributes(item.to_dynamodb_item()),
                "ConditionExpression": "attribute_not_exists(id)",
            }
        }

    def _update_item_request(self, item: OrderItem) -> dict[str, Any]:
        values: dict[str, Any] = {
            ":status": item.status.value,
            ":updated_at": format_timestamp(item.updated_at),
        }
        expression = "SET #status = :status, updated_at = :updated_at"
        if item.notes is not None:
            expression += ", notes = :notes"
            values[":notes"] = item.notes
        else:
            expression += " REMOVE notes"

        return {
            "Update": {
                "TableName": self.items_table_name,
                "Key": serialize_attributes({"order_id": item.order_id, "id": item.id}),
                "UpdateExpression": expression,
                "ConditionExpression": "attribute_exists(id)",
                "ExpressionAttributeNames": {"#status": "status"},
                "ExpressionAttributeValues": serialize_attributes(values),
            }
        }

    def _query_all(
        self, table: Table, query_kwargs: dict[str, Any], operation: str
    ) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        kwargs = dict(query_kwargs)
        try:
            while True:
                response = table.query(**kwargs)
                items.extend(response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    return items
                kwargs["ExclusiveStartKey"] = last_key
        except ClientError as e:
            logger.error(f"Failed to {operation}: {e}")
            raise InternalError(f"Failed to {operation}") from e
