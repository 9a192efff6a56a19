"""Order and order item models.

An Order exclusively owns its OrderItems. Both live in their own DynamoDB
tables; timestamps are stored as fixed-width UTC ISO-8601 strings so that
range queries on ``created_at`` sort lexicographically.
"""

from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    """Enumeration of order status values."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY = "READY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REOPENED = "REOPENED"


class OrderItemStatus(str, Enum):
    """Enumeration of order item status values."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY = "READY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


# Orders in these statuses leave the open-orders index
CLOSED_ORDER_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


def format_timestamp(value: datetime) -> str:
    """Render a datetime as a fixed-width UTC string for storage."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class OrderLineRequest(BaseModel):
    """One requested line of a placement or add-items call.

    Quantities are checked by the order service so that bad input surfaces as
    a ValidationError rather than a schema error.
    """

    menu_item_id: str = Field(..., description="Menu item being ordered")
    quantity: int = Field(..., description="Number of portions")
    notes: str | None = Field(None, description="Customer note for the kitchen")


class OrderItem(BaseModel):
    """A single line on an order.

    Price, name and category are copied from the menu item when the line is
    created and are never refreshed afterwards.
    """

    id: str = Field(..., description="Order item identifier")
    order_id: str = Field(..., description="Owning order")
    restaurant_id: str = Field(..., description="Restaurant of the owning order")
    menu_item_id: str = Field(..., description="Menu item reference")
    menu_item_name: str = Field(..., description="Menu item name at order time")
    category: str = Field(..., description="Menu item category at order time")
    quantity: int = Field(..., description="Number of portions", ge=1)
    price: Decimal = Field(..., description="Unit price at order time", ge=0)
    status: OrderItemStatus = Field(default=OrderItemStatus.PENDING, description="Item status")
    added_in_batch: int = Field(default=1, description="Wave this item was added in", ge=1)
    notes: str | None = Field(None, description="Customer note for the kitchen")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    @property
    def is_cancelled(self) -> bool:
        return self.status == OrderItemStatus.CANCELLED

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "id": self.id,
            "order_id": self.order_id,
            "restaurant_id": self.restaurant_id,
            "menu_item_id": self.menu_item_id,
            "menu_item_name": self.menu_item_name,
            "category": self.category,
            "quantity": self.quantity,
            "price": self.price,
            "status": self.status.value,
            "added_in_batch": self.added_in_batch,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

        if self.notes is not None:
            item["notes"] = self.notes

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "OrderItem":
        """Create OrderItem from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            OrderItem: Parsed model instance
        """
        return cls(
            id=item["id"],
            order_id=item["order_id"],
            restaurant_id=item["restaurant_id"],
            menu_item_id=item["menu_item_id"],
            menu_item_name=item["menu_item_name"],
            category=item["category"],
            quantity=int(item["quantity"]),
            price=Decimal(str(item["price"])),
            status=OrderItemStatus(item["status"]),
            added_in_batch=int(item.get("added_in_batch", 1)),
            notes=item.get("notes"),
            created_at=parse_timestamp(item["created_at"]),
            updated_at=parse_timestamp(item["updated_at"]),
        )


class Order(BaseModel):
    """Customer order placed from a table.

    ``status`` is derived from the item statuses and ``total_amount`` from
    the non-cancelled item lines. ``version`` increases on every write and
    guards concurrent read-modify-write sequences.
    """

    id: str = Field(..., description="Order identifier")
    order_number: str = Field(..., description="Human-facing order number")
    restaurant_id: str = Field(..., description="Restaurant identifier")
    table_id: str = Field(..., description="Table the order was placed from")
    status: OrderStatus = Field(default=OrderStatus.PENDING, description="Derived order status")
    total_amount: Decimal = Field(..., description="Sum of non-cancelled item lines", ge=0)
    customer_name: str | None = Field(None, description="Customer supplied name")
    customer_phone: str | None = Field(None, description="Customer supplied phone")
    notes: str | None = Field(None, description="Customer supplied order note")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")
    version: int = Field(default=0, description="Optimistic concurrency version", ge=0)

    @property
    def is_open(self) -> bool:
        return self.status not in CLOSED_ORDER_STATUSES

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "id": self.id,
            "order_number": self.order_number,
            "restaurant_id": self.restaurant_id,
            "table_id": self.table_id,
            "status": self.status.value,
            "total_amount": self.total_amount,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
            "version": self.version,
        }

        # Sparse key of the open-orders index, present only while the order is open
        if self.is_open:
            item["open_restaurant_id"] = self.restaurant_id

        if self.customer_name is not None:
            item["customer_name"] = self.customer_name

        if self.customer_phone is not None:
            item["customer_phone"] = self.customer_phone

        if self.notes is not None:
            item["notes"] = self.notes

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Order":
        """Create Order from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            Order: Parsed model instance
        """
        return cls(
            id=item["id"],
            order_number=item["order_number"],
            restaurant_id=item["restaurant_id"],
            table_id=item["table_id"],
            status=OrderStatus(item["status"]),
            total_amount=Decimal(str(item["total_amount"])),
            customer_name=item.get("customer_name"),
            customer_phone=item.get("customer_phone"),
            notes=item.get("notes"),
            created_at=parse_timestamp(item["created_at"]),
            updated_at=parse_timestamp(item["updated_at"]),
            version=int(item.get("version", 0)),
        )


class OrderDetails(BaseModel):
    """An order together with its items and table label, as returned to callers."""

    order: Order
    items: list[OrderItem]
    table_label: str | None = None


class AddItemsResult(BaseModel):
    """Outcome of appending a batch of items to an order."""

    order: OrderDetails
    batch_number: int
    added_items: list[OrderItem]
    reopened: bool


class ItemStatusUpdate(BaseModel):
    """Outcome of an item status change and the re-derived order status."""

    item: OrderItem
    order_status: OrderStatus
    order: Order
