"""Component tests for menu and table management against the in-memory store."""

from decimal import Decimal

import pytest

from table_ordering_service.models.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from table_ordering_service.models.order_models import OrderLineRequest
from table_ordering_service.services.menu_service import MenuService
from table_ordering_service.services.order_service import OrderService


@pytest.mark.component
class TestMenuService:
    """Test suite for menu management."""

    @pytest.mark.asyncio
    async def test_create_menu_item(self, menu_service: MenuService, store, mock_restaurant_id: str) -> None:
        item = await menu_service.create_menu_item(
            restaurant_id=mock_restaurant_id, name=" Panna Cotta ", category="Desserts", price=Decimal("6.50")
        )

        assert item.name == "Panna Cotta"
        assert store.menu_items.get_menu_item(item.id) == item

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("name", "category", "price"),
        [("", "Desserts", Decimal("1")), ("Cake", " ", Decimal("1")), ("Cake", "Desserts", Decimal("0"))],
    )
    async def test_create_menu_item_validation(
        self, menu_service: MenuService, mock_restaurant_id: str, name: str, category: str, price: Decimal
    ) -> None:
        with pytest.raises(ValidationError):
            await menu_service.create_menu_item(
                restaurant_id=mock_restaurant_id, name=name, category=category, price=price
            )

    @pytest.mark.asyncio
    async def test_price_change_does_not_touch_existing_orders(
        self, menu_service: MenuService, order_service: OrderService, mock_restaurant_id: str
    ) -> None:
        """Test that order lines keep the price they were created with."""
        details = await order_service.place_order(
            restaurant_id=mock_restaurant_id,
            table_id="table_1",
            lines=[OrderLineRequest(menu_item_id="pasta", quantity=1)],
        )

        updated = await menu_service.update_menu_item(mock_restaurant_id, "pasta", price=Decimal("12.00"))
        fetched = await order_service.get_order(order_id=details.order.id)

        assert updated.price == Decimal("12.00")
        assert fetched.items[0].price == Decimal("10.00")
        assert fetched.order.total_amount == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_update_menu_item_rejections(self, menu_service: MenuService, mock_restaurant_id: str) -> None:
        with pytest.raises(NotFoundError):
            await menu_service.update_menu_item(mock_restaurant_id, "missing", available=False)
        with pytest.raises(AuthorizationError):
            await menu_service.update_menu_item("other_restaurant", "pasta", available=False)
        with pytest.raises(ValidationError):
            await menu_service.update_menu_item(mock_restaurant_id, "pasta", restaurant_id="elsewhere")
        with pytest.raises(ValidationError):
            await menu_service.update_menu_item(mock_restaurant_id, "pasta", id="other")
        with pytest.raises(ValidationError):
            await menu_service.update_menu_item(mock_restaurant_id, "pasta", price=Decimal("-1"))

    @pytest.mark.asyncio
    async def test_public_menu_groups_available_items(
        self, menu_service: MenuService, mock_restaurant_id: str
    ) -> None:
        restaurant, menu = await menu_service.get_public_menu(restaurant_id=mock_restaurant_id)

        assert restaurant.name == "Trattoria"
        assert {category: [i.id for i in items] for category, items in menu.items()} == {
            "Desserts": ["tiramisu"],
            "Mains": ["pasta"],
            "Starters": ["salad"],
        }

    @pytest.mark.asyncio
    async def test_public_menu_hidden_until_published(
        self, menu_service: MenuService, store, mock_restaurant_id: str
    ) -> None:
        restaurant = store.restaurants.get_restaurant(mock_restaurant_id)
        store.restaurants.save_restaurant(restaurant.model_copy(update={"is_published": False}))

        with pytest.raises(NotFoundError):
            await menu_service.get_public_menu(restaurant_id=mock_restaurant_id)
        with pytest.raises(NotFoundError):
            await menu_service.list_active_tables(restaurant_id=mock_restaurant_id)


@pytest.mark.component
class TestTableManagement:
    """Test suite for table management."""

    @pytest.mark.asyncio
    async def test_create_and_list_tables(self, menu_service: MenuService, mock_restaurant_id: str) -> None:
        table = await menu_service.create_table(restaurant_id=mock_restaurant_id, label="Terrace 4")

        labels = [t.label for t in await menu_service.list_tables(restaurant_id=mock_restaurant_id)]
        assert labels == ["T1", "T2", "Terrace 4"]
        assert table.active is True

    @pytest.mark.asyncio
    async def test_duplicate_label_conflicts(self, menu_service: MenuService, mock_restaurant_id: str) -> None:
        with pytest.raises(ConflictError):
            await menu_service.create_table(restaurant_id=mock_restaurant_id, label="t1")

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_label_conflicts(
        self, menu_service: MenuService, store, mock_restaurant_id: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Two requests that both saw no "Patio" yet must not both create one."""
        snapshot = store.tables.list_tables(mock_restaurant_id)
        monkeypatch.setattr(store.tables, "list_tables", lambda restaurant_id: list(snapshot))

        await menu_service.create_table(restaurant_id=mock_restaurant_id, label="Patio")
        with pytest.raises(ConflictError):
            await menu_service.create_table(restaurant_id=mock_restaurant_id, label="patio ")

        labels = [t.label for t in store.tables.tables.values() if t.restaurant_id == mock_restaurant_id]
        assert labels.count("Patio") == 1

    @pytest.mark.asyncio
    async def test_same_label_in_another_restaurant_is_allowed(
        self, menu_service: MenuService
    ) -> None:
        table = await menu_service.create_table(restaurant_id="other_restaurant", label="T1")
        assert table.restaurant_id == "other_restaurant"

    @pytest.mark.asyncio
    async def test_active_tables_only(self, menu_service: MenuService, store, mock_restaurant_id: str) -> None:
        store.tables.tables["table_2"] = store.tables.tables["table_2"].model_copy(update={"active": False})

        tables = await menu_service.list_active_tables(restaurant_id=mock_restaurant_id)

        assert [t.id for t in tables] == ["table_1"]


@pytest.mark.component
class TestRestaurantSettings:
    """Test suite for publishing and restaurant settings."""

    @pytest.mark.asyncio
    async def test_publishing_opens_ordering(
        self, menu_service: MenuService, order_service: OrderService, store, mock_restaurant_id: str
    ) -> None:
        await menu_service.set_published(restaurant_id=mock_restaurant_id, is_published=False)
        with pytest.raises(NotFoundError):
            await order_service.place_order(
                restaurant_id=mock_restaurant_id,
                table_id="table_1",
                lines=[OrderLineRequest(menu_item_id="pasta", quantity=1)],
            )

        restaurant = await menu_service.set_published(restaurant_id=mock_restaurant_id, is_published=True)
        details = await order_service.place_order(
            restaurant_id=mock_restaurant_id,
            table_id="table_1",
            lines=[OrderLineRequest(menu_item_id="pasta", quantity=1)],
        )

        assert restaurant.is_published is True
        assert store.restaurants.get_restaurant(mock_restaurant_id).is_published is True
        assert details.order.total_amount == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_publish_status_counts_available_items(
        self, menu_service: MenuService, mock_restaurant_id: str
    ) -> None:
        status = await menu_service.get_publish_status(restaurant_id=mock_restaurant_id)

        assert status.is_published is True
        assert status.name == "Trattoria"
        assert status.available_menu_items == 3

    @pytest.mark.asyncio
    async def test_unknown_restaurant(self, menu_service: MenuService) -> None:
        with pytest.raises(NotFoundError):
            await menu_service.set_published(restaurant_id="missing", is_published=True)
        with pytest.raises(NotFoundError):
            await menu_service.get_publish_status(restaurant_id="missing")
        with pytest.raises(NotFoundError):
            await menu_service.get_settings(restaurant_id="missing")

    @pytest.mark.asyncio
    async def test_update_settings(self, menu_service: MenuService, mock_restaurant_id: str) -> None:
        renamed = await menu_service.update_settings(restaurant_id=mock_restaurant_id, name=" Osteria ", currency="$")
        defaulted = await menu_service.update_settings(restaurant_id=mock_restaurant_id, name="Osteria", currency="")

        assert (renamed.name, renamed.currency) == ("Osteria", "$")
        assert defaulted.currency == "€"
        assert defaulted.is_published is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("name", "currency"), [("", "$"), ("Osteria", "EUROS!")])
    async def test_update_settings_validation(
        self, menu_service: MenuService, mock_restaurant_id: str, name: str, currency: str
    ) -> None:
        with pytest.raises(ValidationError):
            await menu_service.update_settings(restaurant_id=mock_restaurant_id, name=name, currency=currency)
