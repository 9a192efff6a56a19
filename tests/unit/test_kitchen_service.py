"""Unit tests for the kitchen queue builder and KitchenService."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from table_ordering_service.models.errors import ValidationError
from table_ordering_service.models.kitchen_models import BatchKind, KitchenPriority
from table_ordering_service.models.menu_models import Table
from table_ordering_service.models.order_models import (
    Order,
    OrderItem,
    OrderItemStatus,
    OrderStatus,
)
from table_ordering_service.repositories.menu_repositories import TableRepository
from table_ordering_service.repositories.order_repositories import OrderRepository
from table_ordering_service.services.kitchen_service import KitchenService, build_kitchen_queue

NOW = datetime(2024, 1, 15, 20, 0, tzinfo=UTC)


def make_order(order_id: str, status: OrderStatus, minutes_ago: int) -> Order:
    created = NOW - timedelta(minutes=minutes_ago)
    return Order(
        id=order_id,
        order_number=f"ORD-{order_id}",
        restaurant_id="rest_1",
        table_id="table_1",
        status=status,
        total_amount=Decimal("0"),
        created_at=created,
        updated_at=created,
    )


def make_item(
    order_id: str,
    item_id: str,
    status: OrderItemStatus,
    category: str = "Mains",
    batch: int = 1,
) -> OrderItem:
    return OrderItem(
        id=item_id,
        order_id=order_id,
        restaurant_id="rest_1",
        menu_item_id=f"menu_{item_id}",
        menu_item_name=f"Dish {item_id}",
        category=category,
        quantity=1,
        price=Decimal("10.00"),
        status=status,
        added_in_batch=batch,
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.mark.unit
class TestBuildKitchenQueue:
    """Test suite for build_kitchen_queue."""

    def test_counts_and_completion(self) -> None:
        order = make_order("o1", OrderStatus.PREPARING, 5)
        items = [
            make_item("o1", "a", OrderItemStatus.READY),
            make_item("o1", "b", OrderItemStatus.PREPARING),
            make_item("o1", "c", OrderItemStatus.PENDING),
            make_item("o1", "d", OrderItemStatus.DELIVERED),
            make_item("o1", "e", OrderItemStatus.CANCELLED),
        ]

        queue = build_kitchen_queue([(order, items)], {"table_1": "T1"}, NOW)

        entry = queue.orders[0]
        assert entry.total_items == 3
        assert (entry.pending_items, entry.preparing_items, entry.ready_items) == (1, 1, 1)
        assert entry.completion_percentage == 33.3
        assert entry.is_order_complete is False
        assert entry.table_label == "T1"
        assert entry.age_minutes == 5
        assert entry.priority == KitchenPriority.NORMAL

    def test_all_ready_order_is_dropped(self) -> None:
        """Test that an order whose active items are all READY leaves the queue."""
        order = make_order("o1", OrderStatus.READY, 5)
        items = [
            make_item("o1", "a", OrderItemStatus.READY),
            make_item("o1", "b", OrderItemStatus.DELIVERED),
        ]

        queue = build_kitchen_queue([(order, items)], {}, NOW)

        assert queue.orders == []
        assert queue.summary.active_orders == 0

    def test_category_filter_drops_orders_without_matches(self) -> None:
        """Test that a Desserts filter excludes an order with no dessert items."""
        mains_only = make_order("o1", OrderStatus.PENDING, 5)
        with_dessert = make_order("o2", OrderStatus.PENDING, 4)
        orders = [
            (mains_only, [make_item("o1", "a", OrderItemStatus.PENDING)]),
            (
                with_dessert,
                [
                    make_item("o2", "b", OrderItemStatus.PENDING),
                    make_item("o2", "c", OrderItemStatus.PENDING, category="Desserts"),
                ],
            ),
        ]

        queue = build_kitchen_queue(orders, {}, NOW, category="desserts")

        assert [e.order_id for e in queue.orders] == ["o2"]
        assert queue.orders[0].total_items == 1
        assert queue.orders[0].batches[0].items[0].category == "Desserts"

    def test_category_filter_drops_order_with_only_delivered_matches(self) -> None:
        order = make_order("o1", OrderStatus.PENDING, 5)
        items = [
            make_item("o1", "a", OrderItemStatus.PENDING),
            make_item("o1", "b", OrderItemStatus.DELIVERED, category="Desserts"),
        ]

        queue = build_kitchen_queue([(order, items)], {}, NOW, category="Desserts")

        assert queue.orders == []

    def test_reopened_first_then_oldest_first(self) -> None:
        older = make_order("old", OrderStatus.PENDING, 20)
        newer = make_order("new", OrderStatus.CONFIRMED, 10)
        reopened = make_order("re", OrderStatus.REOPENED, 5)
        orders = [
            (newer, [make_item("new", "a", OrderItemStatus.CONFIRMED)]),
            (reopened, [make_item("re", "b", OrderItemStatus.PENDING, batch=2)]),
            (older, [make_item("old", "c", OrderItemStatus.PENDING)]),
        ]

        queue = build_kitchen_queue(orders, {}, NOW)

        assert [e.order_id for e in queue.orders] == ["re", "old", "new"]
        assert queue.orders[0].priority == KitchenPriority.HIGH
        assert queue.summary.reopened_orders == 1

    def test_urgent_after_threshold(self) -> None:
        stale = make_order("o1", OrderStatus.PENDING, 31)
        borderline = make_order("o2", OrderStatus.PENDING, 30)
        orders = [
            (stale, [make_item("o1", "a", OrderItemStatus.PENDING)]),
            (borderline, [make_item("o2", "b", OrderItemStatus.PENDING)]),
        ]

        queue = build_kitchen_queue(orders, {}, NOW)

        priorities = {e.order_id: e.priority for e in queue.orders}
        assert priorities == {"o1": KitchenPriority.URGENT, "o2": KitchenPriority.NORMAL}
        assert queue.summary.urgent_orders == 1

    def test_batches_are_labelled(self) -> None:
        order = make_order("o1", OrderStatus.REOPENED, 5)
        items = [
            make_item("o1", "a", OrderItemStatus.DELIVERED, batch=1),
            make_item("o1", "b", OrderItemStatus.PREPARING, batch=1),
            make_item("o1", "c", OrderItemStatus.PENDING, batch=2),
        ]

        queue = build_kitchen_queue([(order, items)], {}, NOW)

        batches = queue.orders[0].batches
        assert [(b.batch_number, b.kind) for b in batches] == [
            (1, BatchKind.ORIGINAL),
            (2, BatchKind.NEW_ADDITION),
        ]
        assert [i.id for i in batches[0].items] == ["b"]

    def test_closed_orders_are_skipped(self) -> None:
        delivered = make_order("o1", OrderStatus.DELIVERED, 5)
        cancelled = make_order("o2", OrderStatus.CANCELLED, 5)
        orders = [
            (delivered, [make_item("o1", "a", OrderItemStatus.DELIVERED)]),
            (cancelled, [make_item("o2", "b", OrderItemStatus.CANCELLED)]),
        ]

        assert build_kitchen_queue(orders, {}, NOW).orders == []

    def test_summary_totals(self) -> None:
        orders = [
            (
                make_order("o1", OrderStatus.PREPARING, 5),
                [
                    make_item("o1", "a", OrderItemStatus.PREPARING),
                    make_item("o1", "b", OrderItemStatus.READY),
                ],
            ),
            (make_order("o2", OrderStatus.PENDING, 3), [make_item("o2", "c", OrderItemStatus.PENDING)]),
        ]

        summary = build_kitchen_queue(orders, {}, NOW).summary

        assert summary.active_orders == 2
        assert summary.active_items == 3
        assert (summary.pending_items, summary.preparing_items, summary.ready_items) == (1, 1, 1)


@pytest.mark.unit
class TestKitchenService:
    """Test suite for KitchenService."""

    @pytest.fixture
    def mock_order_repo(self) -> MagicMock:
        repo = MagicMock(spec=OrderRepository)
        order = make_order("o1", OrderStatus.PENDING, 0).model_copy(
            update={"created_at": datetime.now(UTC)}
        )
        repo.list_open_orders.return_value = [order]
        repo.get_items_for_orders.return_value = {"o1": [make_item("o1", "a", OrderItemStatus.PENDING)]}
        return repo

    @pytest.fixture
    def mock_table_repo(self) -> MagicMock:
        repo = MagicMock(spec=TableRepository)
        repo.list_tables.return_value = [
            Table(id="table_1", restaurant_id="rest_1", label="Patio 1", created_at=NOW)
        ]
        return repo

    @pytest.mark.asyncio
    async def test_reads_open_orders_oldest_first(
        self, mock_order_repo: MagicMock, mock_table_repo: MagicMock
    ) -> None:
        service = KitchenService(mock_order_repo, mock_table_repo)

        queue = await service.get_kitchen_queue(restaurant_id="rest_1", status="all", category="ALL")

        mock_order_repo.list_open_orders.assert_called_once_with("rest_1", statuses=None)
        mock_order_repo.list_orders.assert_not_called()
        assert queue.orders[0].table_label == "Patio 1"

    @pytest.mark.asyncio
    async def test_status_filter(self, mock_order_repo: MagicMock, mock_table_repo: MagicMock) -> None:
        service = KitchenService(mock_order_repo, mock_table_repo)

        await service.get_kitchen_queue(restaurant_id="rest_1", status="reopened")

        assert mock_order_repo.list_open_orders.call_args.kwargs["statuses"] == [OrderStatus.REOPENED]

    @pytest.mark.asyncio
    async def test_invalid_status_filter(self, mock_order_repo: MagicMock, mock_table_repo: MagicMock) -> None:
        service = KitchenService(mock_order_repo, mock_table_repo)

        with pytest.raises(ValidationError):
            await service.get_kitchen_queue(restaurant_id="rest_1", status="cooking")

        mock_order_repo.list_open_orders.assert_not_called()
