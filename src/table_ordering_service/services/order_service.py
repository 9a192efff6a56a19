"""Order lifecycle service: placement, add-items, item status and cancellation."""

import logging
import secrets
import string
import uuid
from datetime import UTC, datetime
from decimal import Decimal

from table_ordering_service.models.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from table_ordering_service.models.menu_models import MenuItem, Restaurant
from table_ordering_service.models.order_models import (
    AddItemsResult,
    ItemStatusUpdate,
    Order,
    OrderDetails,
    OrderItem,
    OrderItemStatus,
    OrderLineRequest,
    OrderStatus,
)
from table_ordering_service.observability import traced
from table_ordering_service.observability.metrics import (
    record_item_status_update,
    record_items_added,
    record_order_placed,
)
from table_ordering_service.repositories.menu_repositories import (
    MenuItemRepository,
    RestaurantRepository,
    TableRepository,
)
from table_ordering_service.repositories.order_repositories import OrderChangeSet, OrderRepository
from table_ordering_service.services.batch_tracker import INITIAL_BATCH, next_batch_number
from table_ordering_service.services.order_guard import OrderWriteGuard
from table_ordering_service.services.status_engine import (
    derive_order_status,
    status_after_adding_items,
)

logger = logging.getLogger(__name__)

# One placement or add-items call is a single DynamoDB transaction
MAX_LINES_PER_REQUEST = 50

_ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number(now: datetime) -> str:
    """Build a human-facing order number such as ``ORD-1700000000000-X7QK``."""
    suffix = "".join(secrets.choice(_ORDER_NUMBER_ALPHABET) for _ in range(4))
    return f"ORD-{int(now.timestamp() * 1000)}-{suffix}"


def live_total(items: list[OrderItem]) -> Decimal:
    """Sum of price x quantity over the non-cancelled items."""
    return sum((item.line_total for item in items if not item.is_cancelled), Decimal("0"))


def parse_item_status(value: str | None) -> OrderItemStatus:
    try:
        return OrderItemStatus((value or "").upper())
    except ValueError:
        raise ValidationError(f"Invalid status: {value!r}") from None


class OrderService:
    """Service for the order and order item lifecycle.

    Placement writes the order with its first batch in one transaction.
    Every later mutation is a read-derive-write sequence run through the
    injected OrderWriteGuard, so totals and derived statuses are always
    computed from the state actually being overwritten.
    """

    def __init__(
        self,
        order_repository: OrderRepository,
        menu_item_repository: MenuItemRepository,
        table_repository: TableRepository,
        restaurant_repository: RestaurantRepository,
        write_guard: OrderWriteGuard,
    ) -> None:
        """Initialize the OrderService.

        Args:
            order_repository: Repository for orders and order items
            menu_item_repository: Repository for menu item lookups
            table_repository: Repository for table lookups
            restaurant_repository: Repository for restaurant lookups
            write_guard: Concurrency strategy for order mutations
        """
        self.order_repository = order_repository
        self.menu_item_repository = menu_item_repository
        self.table_repository = table_repository
        self.restaurant_repository = restaurant_repository
        self.write_guard = write_guard

    @traced("place_order")
    async def place_order(
        self,
        restaurant_id: str,
        table_id: str,
        lines: list[OrderLineRequest],
        customer_name: str | None = None,
        customer_phone: str | None = None,
        notes: str | None = None,
    ) -> OrderDetails:
        """Place a new order from a table.

        Args:
            restaurant_id: Restaurant the order is placed with
            table_id: Table the order is placed from
            lines: Requested menu items and quantities
            customer_name: Optional customer name
            customer_phone: Optional customer phone
            notes: Optional order note

        Returns:
            OrderDetails for the created order (status PENDING, batch 1)

        Raises:
            ValidationError: Missing fields, bad quantity, unavailable menu item
            NotFoundError: Restaurant not accepting orders, or table unknown/inactive
        """
        if not restaurant_id or not table_id or not lines:
            raise ValidationError("Restaurant ID, table ID, and items are required")
        self._check_line_count(lines)

        restaurant = self.restaurant_repository.get_restaurant(restaurant_id)
        if restaurant is None or not restaurant.accepting_orders:
            raise NotFoundError("Restaurant not found or not accepting orders")

        table = self.table_repository.get_table(table_id)
        if table is None or table.restaurant_id != restaurant_id or not table.active:
            raise NotFoundError("Table not found or not available")

        resolved = self._resolve_lines(restaurant_id, lines)

        now = datetime.now(UTC)
        order_id = str(uuid.uuid4())
        items = self._build_items(order_id, restaurant_id, resolved, INITIAL_BATCH, now)
        order = Order(
            id=order_id,
            order_number=generate_order_number(now),
            restaurant_id=restaurant_id,
            table_id=table_id,
            status=OrderStatus.PENDING,
            total_amount=live_total(items),
            customer_name=customer_name or None,
            customer_phone=customer_phone or None,
            notes=notes or None,
            created_at=now,
            updated_at=now,
            version=0,
        )

        self.order_repository.create_order(order, items)
        record_order_placed(restaurant_id, len(items))
        logger.info(
            f"Order {order.order_number} placed at table {table.label} "
            f"for restaurant {restaurant_id} ({len(items)} items, total {order.total_amount})"
        )

        return OrderDetails(order=order, items=items, table_label=table.label)

    @traced("add_items")
    async def add_items(self, order_id: str, lines: list[OrderLineRequest]) -> AddItemsResult:
        """Append a new batch of items to an existing order.

        A delivered order is reopened; a cancelled order is rejected.

        Args:
            order_id: Order to extend
            lines: Requested menu items and quantities

        Returns:
            AddItemsResult with the updated order, batch number and new items

        Raises:
            ValidationError: No items, bad quantity, unavailable menu item,
                restaurant no longer accepting orders
            NotFoundError: Unknown order
            ConflictError: Order is cancelled, or concurrent updates exhausted retries
        """
        if not lines:
            raise ValidationError("Items are required")
        self._check_line_count(lines)

        existing = self.order_repository.get_order(order_id)
        if existing is None:
            raise NotFoundError(f"Order {order_id} not found")
        if existing.status == OrderStatus.CANCELLED:
            raise ConflictError("Cannot add items to a cancelled order")

        restaurant = self._require_restaurant(existing.restaurant_id)
        if not restaurant.accepting_orders:
            raise ValidationError("Restaurant is not accepting orders")

        resolved = self._resolve_lines(existing.restaurant_id, lines)
        reopened = False

        def plan(order: Order, items: list[OrderItem]) -> OrderChangeSet:
            nonlocal reopened
            now = datetime.now(UTC)
            new_status = status_after_adding_items(order.status)
            reopened = order.status == OrderStatus.DELIVERED
            batch = next_batch_number(items)
            new_items = self._build_items(order.id, order.restaurant_id, resolved, batch, now)
            additional = live_total(new_items)
            return OrderChangeSet(
                order=order.model_copy(
                    update={
                        "status": new_status,
                        "total_amount": order.total_amount + additional,
                        "updated_at": now,
                    }
                ),
                expected_version=order.version,
                new_items=new_items,
            )

        committed = self.write_guard.execute(order_id, plan)
        new_items = committed.changes.new_items
        record_items_added(committed.order.restaurant_id, len(new_items), reopened)
        logger.info(
            f"Added {len(new_items)} items to order {committed.order.order_number} "
            f"in batch {new_items[0].added_in_batch}"
            + (" (order reopened)" if reopened else "")
        )

        return AddItemsResult(
            order=self._details(committed.order, committed.items),
            batch_number=new_items[0].added_in_batch,
            added_items=new_items,
            reopened=reopened,
        )

    @traced("update_item_status")
    async def update_item_status(
        self,
        restaurant_id: str,
        item_id: str,
        status: str,
        notes: str | None = None,
        order_id: str | None = None,
    ) -> ItemStatusUpdate:
        """Change one item's status and re-derive its order's status and total.

        Args:
            restaurant_id: Authenticated restaurant making the change
            item_id: Order item to update
            status: New item status value
            notes: Optional replacement for the item's notes; an empty string clears them
            order_id: Order the item belongs to, when the caller knows it

        Returns:
            ItemStatusUpdate with the updated item and the derived order status

        Raises:
            ValidationError: Invalid status value
            NotFoundError: Unknown item
            AuthorizationError: Item belongs to another restaurant
            ConflictError: Item or order is cancelled, or retries exhausted
        """
        new_status = parse_item_status(status)

        item = self.order_repository.get_item(item_id, order_id=order_id)
        if item is None:
            raise NotFoundError(f"Order item {item_id} not found")
        if item.restaurant_id != restaurant_id:
            raise AuthorizationError("Order item belongs to another restaurant")

        def plan(order: Order, items: list[OrderItem]) -> OrderChangeSet:
            if order.status == OrderStatus.CANCELLED:
                raise ConflictError("Order is cancelled")

            current = next((i for i in items if i.id == item_id), None)
            if current is None:
                raise NotFoundError(f"Order item {item_id} not found")
            if current.is_cancelled:
                raise ConflictError("Cancelled items cannot change status")

            now = datetime.now(UTC)
            updated_item = current.model_copy(
                update={
                    "status": new_status,
                    "notes": current.notes if notes is None else (notes or None),
                    "updated_at": now,
                }
            )
            next_items = [updated_item if i.id == item_id else i for i in items]
            return OrderChangeSet(
                order=order.model_copy(
                    update={
                        "status": derive_order_status(order.status, (i.status for i in next_items)),
                        "total_amount": live_total(next_items),
                        "updated_at": now,
                    }
                ),
                expected_version=order.version,
                updated_items=[updated_item],
            )

        committed = self.write_guard.execute(item.order_id, plan)
        updated_item = committed.changes.updated_items[0]
        record_item_status_update(new_status.value)
        logger.info(
            f"Item {item_id} of order {committed.order.order_number} set to {new_status.value}; "
            f"order is {committed.order.status.value}"
        )

        return ItemStatusUpdate(
            item=updated_item,
            order_status=committed.order.status,
            order=committed.order,
        )

    @traced("cancel_order")
    async def cancel_order(self, restaurant_id: str, order_id: str) -> OrderDetails:
        """Cancel every open item of an order, which derives the order to CANCELLED.

        Args:
            restaurant_id: Authenticated restaurant making the change
            order_id: Order to cancel

        Returns:
            OrderDetails of the cancelled order

        Raises:
            NotFoundError: Unknown order
            AuthorizationError: Order belongs to another restaurant
            ConflictError: Order already cancelled or has delivered items
        """

        def plan(order: Order, items: list[OrderItem]) -> OrderChangeSet:
            if order.restaurant_id != restaurant_id:
                raise AuthorizationError("Order belongs to another restaurant")
            if order.status == OrderStatus.CANCELLED:
                raise ConflictError("Order is already cancelled")
            if any(i.status == OrderItemStatus.DELIVERED for i in items):
                raise ConflictError("Orders with delivered items cannot be cancelled")

            now = datetime.now(UTC)
            cancelled = [
                i.model_copy(update={"status": OrderItemStatus.CANCELLED, "updated_at": now})
                for i in items
                if not i.is_cancelled
            ]
            by_id = {i.id: i for i in cancelled}
            next_items = [by_id.get(i.id, i) for i in items]
            return OrderChangeSet(
                order=order.model_copy(
                    update={
                        "status": derive_order_status(order.status, (i.status for i in next_items)),
                        "total_amount": live_total(next_items),
                        "updated_at": now,
                    }
                ),
                expected_version=order.version,
                updated_items=cancelled,
            )

        committed = self.write_guard.execute(order_id, plan)
        logger.info(f"Order {committed.order.order_number} cancelled")
        return self._details(committed.order, committed.items)

    async def get_order(self, order_id: str) -> OrderDetails:
        """Get an order with its items.

        Raises:
            NotFoundError: Unknown order
        """
        order = self.order_repository.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return self._details(order, self.order_repository.get_items(order_id))

    async def list_orders(
        self,
        restaurant_id: str,
        table_id: str | None = None,
        status: str | None = None,
    ) -> list[OrderDetails]:
        """List a restaurant's orders, newest first.

        Args:
            restaurant_id: Authenticated restaurant
            table_id: Optional table filter
            status: Optional order status filter

        Returns:
            List of OrderDetails, empty list if none found
        """
        statuses = None
        if status:
            try:
                statuses = [OrderStatus(status.upper())]
            except ValueError:
                raise ValidationError(f"Invalid status: {status!r}") from None

        orders = self.order_repository.list_orders(
            restaurant_id, statuses=statuses, table_id=table_id, newest_first=True
        )
        items_by_order = self.order_repository.get_items_for_orders(o.id for o in orders)
        labels = {t.id: t.label for t in self.table_repository.list_tables(restaurant_id)}

        return [
            OrderDetails(
                order=order,
                items=items_by_order.get(order.id, []),
                table_label=labels.get(order.table_id),
            )
            for order in orders
        ]

    def _details(self, order: Order, items: list[OrderItem]) -> OrderDetails:
        table = self.table_repository.get_table(order.table_id)
        return OrderDetails(order=order, items=items, table_label=table.label if table else None)

    def _require_restaurant(self, restaurant_id: str) -> Restaurant:
        restaurant = self.restaurant_repository.get_restaurant(restaurant_id)
        if restaurant is None:
            raise NotFoundError(f"Restaurant {restaurant_id} not found")
        return restaurant

    def _check_line_count(self, lines: list[OrderLineRequest]) -> None:
        if len(lines) > MAX_LINES_PER_REQUEST:
            raise ValidationError(f"At most {MAX_LINES_PER_REQUEST} items per request")

    def _resolve_lines(
        self, restaurant_id: str, lines: list[OrderLineRequest]
    ) -> list[tuple[OrderLineRequest, MenuItem]]:
        """Validate each line and pair it with its menu item.

        Raises:
            ValidationError: Bad quantity or unknown/unavailable menu item
        """
        resolved = []
        for line in lines:
            if isinstance(line.quantity, bool) or line.quantity < 1:
                raise ValidationError(f"Quantity for menu item {line.menu_item_id} must be at least 1")

            menu_item = self.menu_item_repository.get_menu_item(line.menu_item_id)
            if menu_item is None or menu_item.restaurant_id != restaurant_id or not menu_item.available:
                raise ValidationError(f"Menu item {line.menu_item_id} not found or not available")

            resolved.append((line, menu_item))
        return resolved

    def _build_items(
        self,
        order_id: str,
        restaurant_id: str,
        resolved: list[tuple[OrderLineRequest, MenuItem]],
        batch: int,
        now: datetime,
    ) -> list[OrderItem]:
        return [
            OrderItem(
                id=str(uuid.uuid4()),
                order_id=order_id,
                restaurant_id=restaurant_id,
                menu_item_id=menu_item.id,
                menu_item_name=menu_item.name,
                category=menu_item.category,
                quantity=line.quantity,
                price=menu_item.price,
                status=OrderItemStatus.PENDING,
                added_in_batch=batch,
                notes=line.notes or None,
                created_at=now,
                updated_at=now,
            )
            for line, menu_item in resolved
        ]
