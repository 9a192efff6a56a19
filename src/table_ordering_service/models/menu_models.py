"""Restaurant, table and menu models.

These are the reference data an order is placed against. Prices are
snapshotted onto order items at creation, so editing a MenuItem never
changes an existing order.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from table_ordering_service.models.order_models import format_timestamp, parse_timestamp


class Restaurant(BaseModel):
    """Restaurant account. Orders are only accepted while active and published."""

    id: str = Field(..., description="Restaurant identifier")
    name: str = Field(..., description="Display name")
    currency: str = Field(default="€", description="Currency symbol used on receipts")
    is_active: bool = Field(default=True, description="Account is enabled")
    is_published: bool = Field(default=False, description="Menu is visible to customers")

    @property
    def accepting_orders(self) -> bool:
        return self.is_active and self.is_published

    def to_dynamodb_item(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "currency": self.currency,
            "is_active": self.is_active,
            "is_published": self.is_published,
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Restaurant":
        return cls(
            id=item["id"],
            name=item["name"],
            currency=item.get("currency", "€"),
            is_active=item.get("is_active", True),
            is_published=item.get("is_published", False),
        )


class PublishStatus(BaseModel):
    """Whether customers can see a restaurant's menu, and how much of it."""

    restaurant_id: str
    name: str
    is_published: bool
    available_menu_items: int = Field(..., description="Menu items customers can order", ge=0)


class MenuItem(BaseModel):
    """Menu item model."""

    model_config = ConfigDict(json_encoders={Decimal: str})

    id: str = Field(..., description="Unique identifier for the menu item")
    restaurant_id: str = Field(..., description="Restaurant this item belongs to")
    name: str = Field(..., description="Item name")
    description: str | None = Field(None, description="Item description")
    price: Decimal = Field(..., description="Item price", ge=0)
    category: str = Field(..., description="Category name used for kitchen stations")
    available: bool = Field(default=True, description="Whether item is currently available")
    image_url: str | None = Field(None, description="URL to item image")

    def to_dynamodb_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format.

        Returns:
            dict: DynamoDB-compatible representation
        """
        item: dict[str, Any] = {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "name": self.name,
            "price": self.price,
            "category": self.category,
            "available": self.available,
        }

        if self.description is not None:
            item["description"] = self.description

        if self.image_url is not None:
            item["image_url"] = self.image_url

        return item

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "MenuItem":
        """Create MenuItem from DynamoDB item.

        Args:
            item: DynamoDB item dictionary

        Returns:
            MenuItem: Parsed model instance
        """
        return cls(
            id=item["id"],
            restaurant_id=item["restaurant_id"],
            name=item["name"],
            description=item.get("description"),
            price=Decimal(str(item["price"])),
            category=item["category"],
            available=item.get("available", True),
            image_url=item.get("image_url"),
        )


class Table(BaseModel):
    """Dining table an order is placed from."""

    id: str = Field(..., description="Table identifier (also the QR link token)")
    restaurant_id: str = Field(..., description="Restaurant this table belongs to")
    label: str = Field(..., description="Human label, unique within the restaurant")
    active: bool = Field(default=True, description="Whether the table accepts orders")
    created_at: datetime = Field(..., description="Creation timestamp")

    def to_dynamodb_item(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "restaurant_id": self.restaurant_id,
            "label": self.label,
            "active": self.active,
            "created_at": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dynamodb_item(cls, item: dict[str, Any]) -> "Table":
        return cls(
            id=item["id"],
            restaurant_id=item["restaurant_id"],
            label=item["label"],
            active=item.get("active", True),
            created_at=parse_timestamp(item["created_at"]),
        )
