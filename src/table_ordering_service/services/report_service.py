"""Business reports computed from a restaurant's order history."""

import logging
import time
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from table_ordering_service.models.errors import NotFoundError, ValidationError
from table_ordering_service.models.menu_models import Table
from table_ordering_service.models.order_models import Order, OrderItem, OrderStatus
from table_ordering_service.models.report_models import (
    CategoryPerformance,
    DateRange,
    MenuItemPerformance,
    MenuPerformance,
    OrderMetrics,
    PeakHour,
    ReportOverview,
    RestaurantReport,
    TablePerformance,
    TableReport,
)
from table_ordering_service.observability import traced
from table_ordering_service.observability.metrics import record_report_duration
from table_ordering_service.repositories.menu_repositories import (
    MenuItemRepository,
    RestaurantRepository,
    TableRepository,
)
from table_ordering_service.repositories.order_repositories import OrderRepository

logger = logging.getLogger(__name__)

TOP_MENU_ITEMS = 10
TOP_TABLES = 10
PEAK_HOURS = 3
DEFAULT_REPORT_DAYS = 30

CENTS = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _percentage(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def calculate_growth(current: Decimal | int, previous: Decimal | int) -> float:
    """Percentage change from the previous window to the current one.

    A previous value of zero gives 100 when anything happened now, else 0.
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round(float((Decimal(current) - Decimal(previous)) / Decimal(previous) * 100), 2)


@dataclass
class _Bucket:
    quantity: int = 0
    revenue: Decimal = Decimal("0")
    order_ids: set[str] = field(default_factory=set)

    def add(self, item: OrderItem) -> None:
        self.quantity += item.quantity
        self.revenue += item.line_total
        self.order_ids.add(item.order_id)


def _order_metrics(orders: list[Order]) -> OrderMetrics:
    by_status = Counter(o.status.value for o in orders)
    daily: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
    hourly: Counter[int] = Counter()
    for order in orders:
        created = order.created_at.astimezone(UTC)
        daily[created.date().isoformat()] += order.total_amount
        hourly[created.hour] += 1

    # Ties on count resolve to the earlier hour
    peaks = sorted(hourly.items(), key=lambda kv: (-kv[1], kv[0]))[:PEAK_HOURS]

    return OrderMetrics(
        orders_by_status=dict(by_status),
        daily_revenue=dict(sorted(daily.items())),
        hourly_orders=dict(sorted(hourly.items())),
        peak_hours=[PeakHour(hour=hour, orders=count) for hour, count in peaks],
        completed_orders=by_status.get(OrderStatus.DELIVERED.value, 0),
        cancelled_orders=by_status.get(OrderStatus.CANCELLED.value, 0),
    )


def _menu_performance(items: list[OrderItem]) -> MenuPerformance:
    by_menu_item: dict[str, _Bucket] = defaultdict(_Bucket)
    by_category: dict[str, _Bucket] = defaultdict(_Bucket)
    names: dict[str, tuple[str, str]] = {}

    for item in items:
        if item.is_cancelled:
            continue
        by_menu_item[item.menu_item_id].add(item)
        by_category[item.category].add(item)
        names.setdefault(item.menu_item_id, (item.menu_item_name, item.category))

    top_items = sorted(by_menu_item.items(), key=lambda kv: kv[1].revenue, reverse=True)
    categories = sorted(by_category.items(), key=lambda kv: kv[1].revenue, reverse=True)

    return MenuPerformance(
        top_menu_items=[
            MenuItemPerformance(
                menu_item_id=menu_item_id,
                name=names[menu_item_id][0],
                category=names[menu_item_id][1],
                quantity=bucket.quantity,
                revenue=bucket.revenue,
                orders=len(bucket.order_ids),
            )
            for menu_item_id, bucket in top_items[:TOP_MENU_ITEMS]
        ],
        category_performance=[
            CategoryPerformance(
                category=category,
                quantity=bucket.quantity,
                revenue=bucket.revenue,
                orders=len(bucket.order_ids),
            )
            for category, bucket in categories
        ],
    )


def _table_performance(orders: list[Order], table_labels: dict[str, str]) -> list[TablePerformance]:
    counts: Counter[str] = Counter()
    revenue: dict[str, Decimal] = defaultdict(lambda: Decimal("0"))
    for order in orders:
        counts[order.table_id] += 1
        revenue[order.table_id] += order.total_amount

    ranked = sorted(counts, key=lambda table_id: revenue[table_id], reverse=True)
    return [
        TablePerformance(
            table_id=table_id,
            table_label=table_labels.get(table_id, table_id),
            orders=counts[table_id],
            revenue=revenue[table_id],
            average_order_value=_money(revenue[table_id] / counts[table_id]),
        )
        for table_id in ranked[:TOP_TABLES]
    ]


def _average_prep_minutes(orders: list[Order]) -> float:
    delivered = [o for o in orders if o.status == OrderStatus.DELIVERED]
    if not delivered:
        return 0.0
    total = sum((o.updated_at - o.created_at).total_seconds() for o in delivered)
    return round(total / len(delivered) / 60, 1)


def aggregate_report(
    orders: list[Order],
    items_by_order: dict[str, list[OrderItem]],
    previous_orders: list[Order],
    table_labels: dict[str, str],
) -> tuple[ReportOverview, OrderMetrics, MenuPerformance, list[TablePerformance]]:
    """Aggregate one window of orders into the report sections.

    Args:
        orders: Orders created inside the requested window
        items_by_order: Items of those orders keyed by order id
        previous_orders: Orders of the preceding window of equal length
        table_labels: Table id to label mapping

    Returns:
        Tuple of overview, order metrics, menu performance and top tables
    """
    total_orders = len(orders)
    total_revenue = sum((o.total_amount for o in orders), Decimal("0"))
    previous_revenue = sum((o.total_amount for o in previous_orders), Decimal("0"))

    orders_per_table = Counter(o.table_id for o in orders)
    unique_customers = len(orders_per_table)
    repeat_customers = sum(1 for count in orders_per_table.values() if count > 1)

    order_metrics = _order_metrics(orders)

    overview = ReportOverview(
        total_orders=total_orders,
        total_revenue=total_revenue,
        average_order_value=_money(total_revenue / total_orders) if total_orders else Decimal("0.00"),
        unique_customers=unique_customers,
        repeat_customers=repeat_customers,
        customer_retention_rate=_percentage(repeat_customers, unique_customers),
        completion_rate=_percentage(order_metrics.completed_orders, total_orders),
        cancellation_rate=_percentage(order_metrics.cancelled_orders, total_orders),
        average_prep_time=_average_prep_minutes(orders),
        revenue_growth=calculate_growth(total_revenue, previous_revenue),
        order_growth=calculate_growth(total_orders, len(previous_orders)),
    )

    items = [item for o in orders for item in items_by_order.get(o.id, [])]

    return (
        overview,
        order_metrics,
        _menu_performance(items),
        _table_performance(orders, table_labels),
    )


class ReportService:
    """Service that builds restaurant business reports."""

    def __init__(
        self,
        order_repository: OrderRepository,
        restaurant_repository: RestaurantRepository,
        table_repository: TableRepository,
        menu_item_repository: MenuItemRepository,
        default_days: int = DEFAULT_REPORT_DAYS,
    ) -> None:
        self.order_repository = order_repository
        self.restaurant_repository = restaurant_repository
        self.table_repository = table_repository
        self.menu_item_repository = menu_item_repository
        self.default_days = default_days

    @traced("get_report")
    async def get_report(
        self,
        restaurant_id: str,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
    ) -> RestaurantReport:
        """Build the full report for a restaurant over a date window.

        The window includes both ends and defaults to the trailing
        ``default_days`` ending now. Growth compares it with the window of
        equal length immediately before it.

        Args:
            restaurant_id: Authenticated restaurant
            start_date: Window start
            end_date: Window end

        Returns:
            RestaurantReport for the window

        Raises:
            NotFoundError: Unknown restaurant
            ValidationError: Start after end
        """
        started = time.perf_counter()

        restaurant = self.restaurant_repository.get_restaurant(restaurant_id)
        if restaurant is None:
            raise NotFoundError(f"Restaurant {restaurant_id} not found")

        end = _as_utc(end_date) if end_date else datetime.now(UTC)
        start = _as_utc(start_date) if start_date else end - timedelta(days=self.default_days)
        if start > end:
            raise ValidationError("Start date must not be after end date")

        window = end - start
        orders = self.order_repository.list_orders(
            restaurant_id, created_from=start, created_to=end, newest_first=False
        )
        previous_orders = self.order_repository.list_orders(
            restaurant_id,
            created_from=start - window,
            created_to=start,
            end_inclusive=False,
            newest_first=False,
        )
        items_by_order = self.order_repository.get_items_for_orders(o.id for o in orders)
        tables: list[Table] = self.table_repository.list_tables(restaurant_id)
        menu_items = self.menu_item_repository.list_menu_items(restaurant_id)

        overview, order_metrics, menu_performance, top_tables = aggregate_report(
            orders,
            items_by_order,
            previous_orders,
            {t.id: t.label for t in tables},
        )
        menu_performance.total_menu_items = len(menu_items)
        menu_performance.active_menu_items = sum(1 for m in menu_items if m.available)

        report = RestaurantReport(
            restaurant_id=restaurant.id,
            restaurant_name=restaurant.name,
            currency=restaurant.currency,
            date_range=DateRange(start_date=start, end_date=end),
            overview=overview,
            order_metrics=order_metrics,
            menu_performance=menu_performance,
            table_performance=TableReport(
                top_tables=top_tables,
                total_tables=len(tables),
                active_tables=sum(1 for t in tables if t.active),
            ),
        )

        record_report_duration(time.perf_counter() - started)
        logger.info(
            f"Report for restaurant {restaurant_id}: {overview.total_orders} orders "
            f"between {start.isoformat()} and {end.isoformat()}"
        )
        return report


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
