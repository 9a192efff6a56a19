"""Read-derive-write protection for order mutations.

Any operation that reads an order's state and writes something derived from
it goes through an OrderWriteGuard. The guard owns the concurrency strategy,
so services never deal with versions, locks or transactions themselves.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from table_ordering_service.models.errors import ConflictError, NotFoundError, VersionConflict
from table_ordering_service.models.order_models import Order, OrderItem
from table_ordering_service.observability.metrics import record_write_conflict
from table_ordering_service.repositories.order_repositories import OrderChangeSet, OrderRepository

logger = logging.getLogger(__name__)

ChangePlanner = Callable[[Order, list[OrderItem]], OrderChangeSet]


@dataclass
class CommittedOrder:
    """State of an order right after a guarded write.

    Attributes:
        order: The written order
        items: All of the order's items after the write
        changes: The change set that was applied
    """

    order: Order
    items: list[OrderItem]
    changes: OrderChangeSet


class OrderWriteGuard(ABC):
    """Strategy for running a read-derive-write sequence on one order."""

    @abstractmethod
    def execute(self, order_id: str, plan: ChangePlanner) -> CommittedOrder:
        """Load the order, let ``plan`` compute the changes, and apply them.

        ``plan`` may raise an OrderingError to reject the request; nothing is
        written in that case.

        Args:
            order_id: Order to mutate
            plan: Computes the change set from the current order and items

        Returns:
            CommittedOrder: The order and items as written
        """


class OptimisticOrderWriteGuard(OrderWriteGuard):
    """Guard that relies on the order's version column.

    The write is conditioned on the version that was read. If another writer
    got there first the whole sequence is re-run on fresh state, up to
    ``max_attempts`` times.
    """

    def __init__(self, order_repository: OrderRepository, max_attempts: int = 3) -> None:
        """Initialize the guard.

        Args:
            order_repository: Repository used for reads and the conditional write
            max_attempts: Number of read-derive-write attempts before giving up
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.order_repository = order_repository
        self.max_attempts = max_attempts

    def execute(self, order_id: str, plan: ChangePlanner) -> CommittedOrder:
        for attempt in range(1, self.max_attempts + 1):
            order = self.order_repository.get_order(order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")

            items = self.order_repository.get_items(order_id)
            changes = plan(order, items)

            try:
                written = self.order_repository.commit_changes(changes)
            except VersionConflict:
                record_write_conflict()
                logger.warning(
                    f"Order {order_id} changed during update (attempt {attempt}/{self.max_attempts})"
                )
                continue

            return CommittedOrder(
                order=written,
                items=_merge_items(items, changes),
                changes=changes,
            )

        raise ConflictError(f"Order {order_id} is being updated by someone else, please retry")


def _merge_items(items: list[OrderItem], changes: OrderChangeSet) -> list[OrderItem]:
    updated = {item.id: item for item in changes.updated_items}
    merged = [updated.get(item.id, item) for item in items]
    merged.extend(changes.new_items)
    return merged
