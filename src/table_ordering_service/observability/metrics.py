"""Custom metrics for the table ordering service."""

from opentelemetry import metrics

meter = metrics.get_meter("ordering-svc")

orders_placed_counter = meter.create_counter(
    name="orders_placed_total",
    description="Total number of orders placed",
    unit="1",
)

order_size_histogram = meter.create_histogram(
    name="order_initial_items",
    description="Number of lines in the first batch of a placed order",
    unit="1",
)

items_added_counter = meter.create_counter(
    name="order_items_added_total",
    description="Total number of items appended to existing orders",
    unit="1",
)

orders_reopened_counter = meter.create_counter(
    name="orders_reopened_total",
    description="Total number of delivered orders reopened by new items",
    unit="1",
)

item_status_counter = meter.create_counter(
    name="order_item_status_updates_total",
    description="Total number of item status changes by target status",
    unit="1",
)

write_conflict_counter = meter.create_counter(
    name="order_write_conflicts_total",
    description="Order writes that lost a version race and were re-run",
    unit="1",
)

kitchen_queue_duration = meter.create_histogram(
    name="kitchen_queue_build_seconds",
    description="Time to read and build the kitchen queue",
    unit="s",
)

report_duration = meter.create_histogram(
    name="report_build_seconds",
    description="Time to read and aggregate a business report",
    unit="s",
)


def record_order_placed(restaurant_id: str, item_count: int) -> None:
    """Record a newly placed order.

    Args:
        restaurant_id: Restaurant the order was placed with
        item_count: Number of lines in the first batch
    """
    orders_placed_counter.add(1, {"restaurant_id": restaurant_id})
    order_size_histogram.record(item_count, {"restaurant_id": restaurant_id})


def record_items_added(restaurant_id: str, item_count: int, reopened: bool) -> None:
    """Record an add-items call.

    Args:
        restaurant_id: Restaurant owning the order
        item_count: Number of lines appended
        reopened: Whether the call reopened a delivered order
    """
    items_added_counter.add(item_count, {"restaurant_id": restaurant_id})
    if reopened:
        orders_reopened_counter.add(1, {"restaurant_id": restaurant_id})


def record_item_status_update(status: str) -> None:
    item_status_counter.add(1, {"status": status})


def record_write_conflict() -> None:
    write_conflict_counter.add(1)


def record_kitchen_queue_duration(duration_seconds: float) -> None:
    kitchen_queue_duration.record(duration_seconds)


def record_report_duration(duration_seconds: float) -> None:
    report_duration.record(duration_seconds)
