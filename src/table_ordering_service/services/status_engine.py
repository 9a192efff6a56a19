"""Order status derivation.

An order's status is never set directly. It is derived from the statuses of
its items, plus one transition owned by add-items: a DELIVERED order that
receives new items becomes REOPENED.
"""

from collections.abc import Iterable

from table_ordering_service.models.errors import ConflictError
from table_ordering_service.models.order_models import OrderItemStatus, OrderStatus

_READY_OR_LATER = frozenset({OrderItemStatus.READY, OrderItemStatus.DELIVERED})
_PREPARING_OR_LATER = _READY_OR_LATER | {OrderItemStatus.PREPARING}
_CONFIRMED_OR_LATER = _PREPARING_OR_LATER | {OrderItemStatus.CONFIRMED}


def derive_order_status(
    current: OrderStatus, item_statuses: Iterable[OrderItemStatus]
) -> OrderStatus:
    """Derive an order status from the full set of its item statuses.

    Cancelled items are left out of every comparison. Rules, first match wins:

    1. every item DELIVERED -> DELIVERED
    2. some item READY, every item READY or DELIVERED -> READY
    3. some item PREPARING, every item PREPARING or later -> PREPARING
    4. every item CONFIRMED or later -> CONFIRMED
    5. otherwise the current status is kept

    An order whose items are all cancelled is CANCELLED. A REOPENED order
    only leaves REOPENED through rule 1.

    Args:
        current: The order's status before this derivation
        item_statuses: Statuses of all the order's items

    Returns:
        OrderStatus: The derived status
    """
    statuses = list(item_statuses)
    if not statuses:
        return current

    live = [s for s in statuses if s != OrderItemStatus.CANCELLED]
    if not live:
        return OrderStatus.CANCELLED

    live_set = set(live)
    derived: OrderStatus | None = None
    if live_set == {OrderItemStatus.DELIVERED}:
        derived = OrderStatus.DELIVERED
    elif OrderItemStatus.READY in live_set and live_set <= _READY_OR_LATER:
        derived = OrderStatus.READY
    elif OrderItemStatus.PREPARING in live_set and live_set <= _PREPARING_OR_LATER:
        derived = OrderStatus.PREPARING
    elif live_set <= _CONFIRMED_OR_LATER:
        derived = OrderStatus.CONFIRMED

    if current == OrderStatus.REOPENED and derived != OrderStatus.DELIVERED:
        return OrderStatus.REOPENED

    return derived or current


def status_after_adding_items(current: OrderStatus) -> OrderStatus:
    """Apply the reopen policy for an add-items request.

    Args:
        current: The order's status before new items are appended

    Returns:
        OrderStatus: REOPENED for a delivered order, otherwise unchanged

    Raises:
        ConflictError: If the order is cancelled
    """
    if current == OrderStatus.CANCELLED:
        raise ConflictError("Cannot add items to a cancelled order")
    if current == OrderStatus.DELIVERED:
        return OrderStatus.REOPENED
    return current
