"""Batch (wave) numbering for items added to an order."""

from collections.abc import Iterable

from table_ordering_service.models.order_models import OrderItem

INITIAL_BATCH = 1


def next_batch_number(items: Iterable[OrderItem]) -> int:
    """Return the batch number for the next group of items.

    Batch 1 belongs to the items created at placement; every add-items call
    gets one number above the highest existing batch.
    """
    return max((item.added_in_batch for item in items), default=0) + 1
