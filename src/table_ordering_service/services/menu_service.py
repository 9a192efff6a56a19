"""Menu, table and restaurant settings management, plus the public menu customers order from."""

import logging
import uuid
from datetime import UTC, datetime
from decimal import Decimal

from table_ordering_service.models.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from table_ordering_service.models.menu_models import MenuItem, PublishStatus, Restaurant, Table
from table_ordering_service.observability import traced
from table_ordering_service.repositories.menu_repositories import (
    MenuItemRepository,
    RestaurantRepository,
    TableRepository,
)

logger = logging.getLogger(__name__)

# Fields an owner may change on an existing menu item
MENU_ITEM_UPDATABLE_FIELDS = frozenset({"name", "description", "price", "category", "available", "image_url"})
DEFAULT_CURRENCY = "€"
MAX_CURRENCY_LENGTH = 5


def _require_text(value: str | None, field_name: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def _require_price(value: Decimal | None) -> Decimal:
    if value is None or value <= 0:
        raise ValidationError("Price must be greater than zero")
    return value


class MenuService:
    """Service for a restaurant's menu items, tables and settings."""

    def __init__(
        self,
        restaurant_repository: RestaurantRepository,
        menu_item_repository: MenuItemRepository,
        table_repository: TableRepository,
    ) -> None:
        self.restaurant_repository = restaurant_repository
        self.menu_item_repository = menu_item_repository
        self.table_repository = table_repository

    @traced("create_menu_item")
    async def create_menu_item(
        self,
        restaurant_id: str,
        name: str,
        category: str,
        price: Decimal,
        description: str | None = None,
        available: bool = True,
        image_url: str | None = None,
    ) -> MenuItem:
        """Add an item to a restaurant's menu.

        Raises:
            ValidationError: Missing name or category, price not positive
        """
        menu_item = MenuItem(
            id=str(uuid.uuid4()),
            restaurant_id=restaurant_id,
            name=_require_text(name, "Name"),
            category=_require_text(category, "Category"),
            price=_require_price(price),
            description=description or None,
            available=available,
            image_url=image_url or None,
        )
        self.menu_item_repository.save_menu_item(menu_item)
        logger.info(f"Created menu item {menu_item.id} ({menu_item.name}) for restaurant {restaurant_id}")
        return menu_item

    @traced("update_menu_item")
    async def update_menu_item(self, restaurant_id: str, menu_item_id: str, /, **changes) -> MenuItem:
        """Change fields of a menu item.

        Existing order lines keep the name, category and price they were
        created with.

        Raises:
            NotFoundError: Unknown menu item
            AuthorizationError: Menu item belongs to another restaurant
            ValidationError: Unknown field, blank name/category, price not positive
        """
        unknown = set(changes) - MENU_ITEM_UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        menu_item = self.menu_item_repository.get_menu_item(menu_item_id)
        if menu_item is None:
            raise NotFoundError(f"Menu item {menu_item_id} not found")
        if menu_item.restaurant_id != restaurant_id:
            raise AuthorizationError("Menu item belongs to another restaurant")

        updates = {key: value for key, value in changes.items() if value is not None}
        if "name" in updates:
            updates["name"] = _require_text(updates["name"], "Name")
        if "category" in updates:
            updates["category"] = _require_text(updates["category"], "Category")
        if "price" in updates:
            updates["price"] = _require_price(updates["price"])

        updated = menu_item.model_copy(update=updates)
        self.menu_item_repository.save_menu_item(updated)
        logger.info(f"Updated menu item {menu_item_id}: {', '.join(sorted(updates)) or 'no changes'}")
        return updated

    async def list_menu_items(self, restaurant_id: str) -> list[MenuItem]:
        return self.menu_item_repository.list_menu_items(restaurant_id)

    async def get_public_menu(self, restaurant_id: str) -> tuple[Restaurant, dict[str, list[MenuItem]]]:
        """Get the menu customers see: available items grouped by category.

        Returns:
            Tuple of the restaurant and its available items keyed by category

        Raises:
            NotFoundError: Unknown, inactive or unpublished restaurant
        """
        restaurant = self._require_accepting_restaurant(restaurant_id)

        menu: dict[str, list[MenuItem]] = {}
        for item in self.menu_item_repository.list_menu_items(restaurant_id):
            if item.available:
                menu.setdefault(item.category, []).append(item)
        return restaurant, menu

    @traced("create_table")
    async def create_table(self, restaurant_id: str, label: str) -> Table:
        """Create a table for a restaurant.

        Raises:
            ValidationError: Missing label
            ConflictError: Another table of the restaurant has the same label
        """
        label = _require_text(label, "Table label")

        # Early answer for the common case; the repository write enforces it
        existing = self.table_repository.list_tables(restaurant_id)
        if any(t.label.lower() == label.lower() for t in existing):
            raise ConflictError(f"Table {label} already exists")

        table = Table(
            id=str(uuid.uuid4()),
            restaurant_id=restaurant_id,
            label=label,
            active=True,
            created_at=datetime.now(UTC),
        )
        self.table_repository.create_table(table)
        logger.info(f"Created table {label} ({table.id}) for restaurant {restaurant_id}")
        return table

    async def list_tables(self, restaurant_id: str) -> list[Table]:
        return self.table_repository.list_tables(restaurant_id)

    async def list_active_tables(self, restaurant_id: str) -> list[Table]:
        """List the tables customers can order from.

        Raises:
            NotFoundError: Unknown, inactive or unpublished restaurant
        """
        self._require_accepting_restaurant(restaurant_id)
        return [t for t in self.table_repository.list_tables(restaurant_id) if t.active]

    async def get_publish_status(self, restaurant_id: str) -> PublishStatus:
        """Get whether the restaurant's menu is published.

        Raises:
            NotFoundError: Unknown restaurant
        """
        restaurant = self._require_restaurant(restaurant_id)
        available = sum(1 for m in self.menu_item_repository.list_menu_items(restaurant_id) if m.available)
        return PublishStatus(
            restaurant_id=restaurant.id,
            name=restaurant.name,
            is_published=restaurant.is_published,
            available_menu_items=available,
        )

    @traced("set_published")
    async def set_published(self, restaurant_id: str, is_published: bool) -> Restaurant:
        """Publish or unpublish the menu.

        Customers can only see the menu and place orders while the
        restaurant is published.

        Raises:
            NotFoundError: Unknown restaurant
        """
        restaurant = self.restaurant_repository.update_restaurant(restaurant_id, is_published=is_published)
        if restaurant is None:
            raise NotFoundError("Restaurant not found")
        logger.info(f"Restaurant {restaurant_id} {'published' if is_published else 'unpublished'}")
        return restaurant

    async def get_settings(self, restaurant_id: str) -> Restaurant:
        return self._require_restaurant(restaurant_id)

    @traced("update_settings")
    async def update_settings(self, restaurant_id: str, name: str, currency: str | None = None) -> Restaurant:
        """Change the restaurant's display name and currency symbol.

        A blank currency falls back to the default symbol.

        Raises:
            ValidationError: Missing name, currency symbol too long
            NotFoundError: Unknown restaurant
        """
        name = _require_text(name, "Name")
        currency = (currency or "").strip() or DEFAULT_CURRENCY
        if len(currency) > MAX_CURRENCY_LENGTH:
            raise ValidationError(f"Currency symbol must be {MAX_CURRENCY_LENGTH} characters or less")

        restaurant = self.restaurant_repository.update_restaurant(restaurant_id, name=name, currency=currency)
        if restaurant is None:
            raise NotFoundError("Restaurant not found")
        logger.info(f"Updated settings of restaurant {restaurant_id}")
        return restaurant

    def _require_restaurant(self, restaurant_id: str) -> Restaurant:
        restaurant = self.restaurant_repository.get_restaurant(restaurant_id)
        if restaurant is None:
            raise NotFoundError("Restaurant not found")
        return restaurant

    def _require_accepting_restaurant(self, restaurant_id: str) -> Restaurant:
        restaurant = self.restaurant_repository.get_restaurant(restaurant_id)
        if restaurant is None or not restaurant.accepting_orders:
            raise NotFoundError("Restaurant not found")
        return restaurant
