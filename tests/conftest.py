"""Shared pytest fixtures and configuration for all tests."""

import os
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal

import pytest

# Keeps main/lambda_handler from building a real application on import
os.environ.setdefault("ENVIRONMENT", "test")

from table_ordering_service.models.errors import ConflictError, VersionConflict  # noqa: E402
from table_ordering_service.models.menu_models import MenuItem, Restaurant, Table  # noqa: E402
from table_ordering_service.models.order_models import (  # noqa: E402
    Order,
    OrderItem,
    OrderStatus,
)
from table_ordering_service.repositories.order_repositories import OrderChangeSet  # noqa: E402
from table_ordering_service.services.kitchen_service import KitchenService  # noqa: E402
from table_ordering_service.services.menu_service import MenuService  # noqa: E402
from table_ordering_service.services.order_guard import OptimisticOrderWriteGuard  # noqa: E402
from table_ordering_service.services.order_service import OrderService  # noqa: E402
from table_ordering_service.services.report_service import ReportService  # noqa: E402


class InMemoryOrderRepository:
    """Dict-backed stand-in for OrderRepository with the same version check."""

    def __init__(self) -> None:
        self.orders: dict[str, Order] = {}
        self.items: dict[str, OrderItem] = {}
        self.commits = 0

    def get_order(self, order_id: str) -> Order | None:
        return self.orders.get(order_id)

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
        wanted = set(statuses) if statuses else None
        result = []
        for order in self.orders.values():
            if order.restaurant_id != restaurant_id:
                continue
            if created_from is not None and order.created_at < created_from:
                continue
            if created_to is not None:
                if order.created_at > created_to:
                    continue
                if not end_inclusive and order.created_at == created_to:
                    continue
            if wanted is not None and order.status not in wanted:
                continue
            if table_id and order.table_id != table_id:
                continue
            result.append(order)
        result.sort(key=lambda o: o.created_at, reverse=newest_first)
        return result

    def list_open_orders(
        self, restaurant_id: str, statuses: Iterable[OrderStatus] | None = None
    ) -> list[Order]:
        return [o for o in self.list_orders(restaurant_id, statuses=statuses, newest_first=False) if o.is_open]

    def get_items(self, order_id: str) -> list[OrderItem]:
        items = [i for i in self.items.values() if i.order_id == order_id]
        items.sort(key=lambda i: (i.added_in_batch, i.created_at))
        return items

    def get_items_for_orders(self, order_ids: Iterable[str]) -> dict[str, list[OrderItem]]:
        return {order_id: self.get_items(order_id) for order_id in order_ids}

    def get_item(self, item_id: str, order_id: str | None = None) -> OrderItem | None:
        item = self.items.get(item_id)
        if item is not None and order_id is not None and item.order_id != order_id:
            return None
        return item

    def create_order(self, order: Order, items: list[OrderItem]) -> None:
        self.orders[order.id] = order
        for item in items:
            self.items[item.id] = item

    def commit_changes(self, changes: OrderChangeSet) -> Order:
        stored = self.orders[changes.order.id]
        if stored.version != changes.expected_version:
            raise VersionConflict(stored.id, changes.expected_version)
        committed = changes.order.model_copy(update={"version": changes.expected_version + 1})
        self.orders[committed.id] = committed
        for item in [*changes.new_items, *changes.updated_items]:
            self.items[item.id] = item
        self.commits += 1
        return committed


class InMemoryRestaurantRepository:
    def __init__(self) -> None:
        self.restaurants: dict[str, Restaurant] = {}

    def get_restaurant(self, restaurant_id: str) -> Restaurant | None:
        return self.restaurants.get(restaurant_id)

    def save_restaurant(self, restaurant: Restaurant) -> None:
        self.restaurants[restaurant.id] = restaurant

    def update_restaurant(self, restaurant_id: str, **fields) -> Restaurant | None:
        restaurant = self.restaurants.get(restaurant_id)
        if restaurant is None:
            return None
        self.restaurants[restaurant_id] = restaurant.model_copy(update=fields)
        return self.restaurants[restaurant_id]


class InMemoryMenuItemRepository:
    def __init__(self) -> None:
        self.menu_items: dict[str, MenuItem] = {}

    def get_menu_item(self, menu_item_id: str) -> MenuItem | None:
        return self.menu_items.get(menu_item_id)

    def list_menu_items(self, restaurant_id: str) -> list[MenuItem]:
        items = [m for m in self.menu_items.values() if m.restaurant_id == restaurant_id]
        items.sort(key=lambda m: (m.category.lower(), m.name.lower()))
        return items

    def save_menu_item(self, menu_item: MenuItem) -> None:
        self.menu_items[menu_item.id] = menu_item


class InMemoryTableRepository:
    def __init__(self) -> None:
        self.tables: dict[str, Table] = {}

    def get_table(self, table_id: str) -> Table | None:
        return self.tables.get(table_id)

    def list_tables(self, restaurant_id: str) -> list[Table]:
        tables = [t for t in self.tables.values() if t.restaurant_id == restaurant_id]
        tables.sort(key=lambda t: t.label)
        return tables

    def create_table(self, table: Table) -> None:
        if table.id in self.tables:
            raise ConflictError(f"Table {table.id} already exists")
        wanted = table.label.lower()
        if any(
            t.restaurant_id == table.restaurant_id and t.label.lower() == wanted
            for t in self.tables.values()
        ):
            raise ConflictError(f"Table {table.label} already exists")
        self.tables[table.id] = table


@dataclass
class Store:
    """In-memory repositories seeded with one open restaurant."""

    orders: InMemoryOrderRepository
    restaurants: InMemoryRestaurantRepository
    menu_items: InMemoryMenuItemRepository
    tables: InMemoryTableRepository


@pytest.fixture
def mock_restaurant_id() -> str:
    """Fixture providing a standard test restaurant ID."""
    return "rest_123456"


@pytest.fixture
def store(mock_restaurant_id: str) -> Store:
    """In-memory store with a published restaurant, two tables and a small menu.

    Menu: pasta 10.00 (Mains), salad 5.00 (Starters), tiramisu 8.00 (Desserts),
    soup 6.00 (Starters, unavailable).
    """
    now = datetime(2024, 1, 15, 12, 0, tzinfo=UTC)
    store = Store(
        orders=InMemoryOrderRepository(),
        restaurants=InMemoryRestaurantRepository(),
        menu_items=InMemoryMenuItemRepository(),
        tables=InMemoryTableRepository(),
    )
    store.restaurants.save_restaurant(
        Restaurant(
            id=mock_restaurant_id,
            name="Trattoria",
            currency="€",
            is_active=True,
            is_published=True,
        )
    )
    for table_id, label in (("table_1", "T1"), ("table_2", "T2")):
        store.tables.create_table(
            Table(id=table_id, restaurant_id=mock_restaurant_id, label=label, created_at=now)
        )
    for menu_item_id, name, category, price, available in (
        ("pasta", "Pasta Carbonara", "Mains", "10.00", True),
        ("salad", "Green Salad", "Starters", "5.00", True),
        ("tiramisu", "Tiramisu", "Desserts", "8.00", True),
        ("soup", "Soup of the Day", "Starters", "6.00", False),
    ):
        store.menu_items.save_menu_item(
            MenuItem(
                id=menu_item_id,
                restaurant_id=mock_restaurant_id,
                name=name,
                category=category,
                price=Decimal(price),
                available=available,
            )
        )
    return store


@pytest.fixture
def order_service(store: Store) -> OrderService:
    """OrderService wired to the in-memory store."""
    return OrderService(
        order_repository=store.orders,
        menu_item_repository=store.menu_items,
        table_repository=store.tables,
        restaurant_repository=store.restaurants,
        write_guard=OptimisticOrderWriteGuard(store.orders, max_attempts=3),
    )


@pytest.fixture
def kitchen_service(store: Store) -> KitchenService:
    return KitchenService(order_repository=store.orders, table_repository=store.tables)


@pytest.fixture
def report_service(store: Store) -> ReportService:
    return ReportService(
        order_repository=store.orders,
        restaurant_repository=store.restaurants,
        table_repository=store.tables,
        menu_item_repository=store.menu_items,
    )


@pytest.fixture
def menu_service(store: Store) -> MenuService:
    return MenuService(
        restaurant_repository=store.restaurants,
        menu_item_repository=store.menu_items,
        table_repository=store.tables,
    )
