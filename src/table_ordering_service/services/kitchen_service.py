"""Kitchen queue: the live, prioritised view of open orders for kitchen staff.

The queue is rebuilt from stored state on every poll. Whether an order
counts as complete here is decided at read time and is independent of the
order's persisted status; an order whose active items are all READY drops
out of the queue even though it is not DELIVERED yet.
"""

import logging
import time
from collections import defaultdict
from collections.abc import Iterable
from datetime import UTC, datetime

from table_ordering_service.models.errors import ValidationError
from table_ordering_service.models.kitchen_models import (
    BatchKind,
    KitchenBatch,
    KitchenItem,
    KitchenOrder,
    KitchenPriority,
    KitchenQueue,
    KitchenSummary,
)
from table_ordering_service.models.order_models import (
    CLOSED_ORDER_STATUSES,
    Order,
    OrderItem,
    OrderItemStatus,
    OrderStatus,
)
from table_ordering_service.observability import traced
from table_ordering_service.observability.metrics import record_kitchen_queue_duration
from table_ordering_service.repositories.menu_repositories import TableRepository
from table_ordering_service.repositories.order_repositories import OrderRepository
from table_ordering_service.services.batch_tracker import INITIAL_BATCH

logger = logging.getLogger(__name__)

INACTIVE_ITEM_STATUSES = frozenset({OrderItemStatus.DELIVERED, OrderItemStatus.CANCELLED})
DEFAULT_URGENT_MINUTES = 30


def _priority(order: Order, age_minutes: int, urgent_after_minutes: int) -> KitchenPriority:
    if order.status == OrderStatus.REOPENED:
        return KitchenPriority.HIGH
    if age_minutes > urgent_after_minutes:
        return KitchenPriority.URGENT
    return KitchenPriority.NORMAL


def _group_batches(items: list[OrderItem]) -> list[KitchenBatch]:
    by_batch: dict[int, list[OrderItem]] = defaultdict(list)
    for item in items:
        by_batch[item.added_in_batch].append(item)

    return [
        KitchenBatch(
            batch_number=batch,
            kind=BatchKind.ORIGINAL if batch == INITIAL_BATCH else BatchKind.NEW_ADDITION,
            items=[
                KitchenItem(
                    id=item.id,
                    menu_item_id=item.menu_item_id,
                    name=item.menu_item_name,
                    category=item.category,
                    quantity=item.quantity,
                    status=item.status,
                    notes=item.notes,
                )
                for item in sorted(by_batch[batch], key=lambda i: i.created_at)
            ],
        )
        for batch in sorted(by_batch)
    ]


def build_kitchen_order(
    order: Order,
    items: list[OrderItem],
    table_label: str | None,
    now: datetime,
    category: str | None = None,
    urgent_after_minutes: int = DEFAULT_URGENT_MINUTES,
) -> KitchenOrder | None:
    """Build the kitchen view of one order.

    Returns None when the order has nothing for the kitchen: no item in the
    requested category, or every active item already READY.
    """
    if category:
        wanted = category.lower()
        items = [i for i in items if i.category.lower() == wanted]
        if not items:
            return None

    active = [i for i in items if i.status not in INACTIVE_ITEM_STATUSES]
    if category and not active:
        return None

    counts = defaultdict(int)
    for item in active:
        counts[item.status] += 1

    total = len(active)
    ready = counts[OrderItemStatus.READY]
    if total > 0 and ready == total:
        return None

    age_minutes = max(0, int((now - order.created_at).total_seconds() // 60))

    return KitchenOrder(
        order_id=order.id,
        order_number=order.order_number,
        table_id=order.table_id,
        table_label=table_label,
        status=order.status,
        priority=_priority(order, age_minutes, urgent_after_minutes),
        customer_name=order.customer_name,
        notes=order.notes,
        created_at=order.created_at,
        age_minutes=age_minutes,
        total_items=total,
        pending_items=counts[OrderItemStatus.PENDING],
        confirmed_items=counts[OrderItemStatus.CONFIRMED],
        preparing_items=counts[OrderItemStatus.PREPARING],
        ready_items=ready,
        completion_percentage=round(ready / total * 100, 1) if total else 0.0,
        is_order_complete=False,
        batches=_group_batches(active),
    )


def build_kitchen_queue(
    orders: Iterable[tuple[Order, list[OrderItem]]],
    table_labels: dict[str, str],
    now: datetime,
    category: str | None = None,
    urgent_after_minutes: int = DEFAULT_URGENT_MINUTES,
) -> KitchenQueue:
    """Turn open orders and their items into the prioritised kitchen queue.

    Reopened orders come first, everything else is first in, first out.

    Args:
        orders: Pairs of order and all of its items
        table_labels: Table id to label mapping
        now: Reference time for order ages
        category: Optional case-insensitive category filter
        urgent_after_minutes: Age after which a normal order becomes URGENT

    Returns:
        KitchenQueue with ordered entries and summary counts
    """
    entries = []
    for order, items in orders:
        if order.status in CLOSED_ORDER_STATUSES:
            continue
        entry = build_kitchen_order(
            order,
            items,
            table_labels.get(order.table_id),
            now,
            category=category,
            urgent_after_minutes=urgent_after_minutes,
        )
        if entry is not None:
            entries.append(entry)

    entries.sort(key=lambda e: (e.status != OrderStatus.REOPENED, e.created_at))

    summary = KitchenSummary(
        active_orders=len(entries),
        active_items=sum(e.total_items for e in entries),
        pending_items=sum(e.pending_items for e in entries),
        preparing_items=sum(e.preparing_items for e in entries),
        ready_items=sum(e.ready_items for e in entries),
        urgent_orders=sum(1 for e in entries if e.priority == KitchenPriority.URGENT),
        reopened_orders=sum(1 for e in entries if e.status == OrderStatus.REOPENED),
    )

    return KitchenQueue(orders=entries, summary=summary, generated_at=now)


class KitchenService:
    """Service that reads open orders and renders the kitchen queue."""

    def __init__(
        self,
        order_repository: OrderRepository,
        table_repository: TableRepository,
        urgent_after_minutes: int = DEFAULT_URGENT_MINUTES,
    ) -> None:
        """Initialize the KitchenService.

        Args:
            order_repository: Repository for orders and order items
            table_repository: Repository for table labels
            urgent_after_minutes: Age after which a normal order becomes URGENT
        """
        self.order_repository = order_repository
        self.table_repository = table_repository
        self.urgent_after_minutes = urgent_after_minutes

    @traced("get_kitchen_queue")
    async def get_kitchen_queue(
        self,
        restaurant_id: str,
        status: str | None = None,
        category: str | None = None,
    ) -> KitchenQueue:
        """Build the kitchen queue for a restaurant.

        Args:
            restaurant_id: Authenticated restaurant
            status: Optional order status filter ("all" means no filter)
            category: Optional item category filter ("all" means no filter)

        Returns:
            KitchenQueue for the restaurant

        Raises:
            ValidationError: Unknown status value
        """
        started = time.perf_counter()

        statuses = None
        if status and status.lower() != "all":
            try:
                statuses = [OrderStatus(status.upper())]
            except ValueError:
                raise ValidationError(f"Invalid status: {status!r}") from None
        if category and category.lower() == "all":
            category = None

        orders = self.order_repository.list_open_orders(restaurant_id, statuses=statuses)
        items_by_order = self.order_repository.get_items_for_orders(o.id for o in orders)
        labels = {t.id: t.label for t in self.table_repository.list_tables(restaurant_id)}

        queue = build_kitchen_queue(
            ((order, items_by_order.get(order.id, [])) for order in orders),
            labels,
            datetime.now(UTC),
            category=category,
            urgent_after_minutes=self.urgent_after_minutes,
        )

        record_kitchen_queue_duration(time.perf_counter() - started)
        logger.debug(
            f"Kitchen queue for restaurant {restaurant_id}: "
            f"{queue.summary.active_orders} orders, {queue.summary.active_items} items"
        )
        return queue
